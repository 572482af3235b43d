import unittest
from dataclasses import dataclass
from typing import NamedTuple

import torch

from pytorch_onehot import Backing, OneHotArray, adapt, onecold, onehotbatch

LABELS = ["a", "b", "c"]

requires_cuda = unittest.skipUnless(torch.cuda.is_available(), "CUDA is not available")


class Pair(NamedTuple):
    target: OneHotArray
    weight: torch.Tensor


@dataclass(frozen=True)
class Sample:
    target: OneHotArray
    name: str


class TestBacking(unittest.TestCase):
    def test_from_device(self):
        self.assertEqual(Backing.from_device("cpu"), Backing.Host)
        self.assertEqual(Backing.from_device(torch.device("cpu")), Backing.Host)
        self.assertEqual(Backing.from_device("cuda:0"), Backing.Accelerator)
        self.assertEqual(Backing.from_device("mps"), Backing.Accelerator)

    def test_host_addressable(self):
        self.assertTrue(Backing.Host.host_addressable())
        self.assertFalse(Backing.Accelerator.host_addressable())

    def test_array_backing(self):
        self.assertEqual(onehotbatch(["a"], LABELS).backing, Backing.Host)


class TestAdapt(unittest.TestCase):
    def test_onehot(self):
        x = onehotbatch(["b", "c"], LABELS)
        y = adapt("cpu", x)
        self.assertIsInstance(y, OneHotArray)
        self.assertEqual(y.num_classes, 3)
        self.assertTrue(torch.equal(y, x))

    def test_nested(self):
        x = onehotbatch(["b", "c"], LABELS)
        adapted = adapt("cpu", {"x": x, "ts": [torch.ones(2), (torch.zeros(1), 3)], "n": 3})
        self.assertIsInstance(adapted["x"], OneHotArray)
        self.assertIsInstance(adapted["ts"], list)
        self.assertIsInstance(adapted["ts"][1], tuple)
        self.assertEqual(adapted["ts"][1][1], 3)
        self.assertEqual(adapted["n"], 3)

    def test_named_tuple(self):
        pair = adapt("cpu", Pair(onehotbatch(["a"], LABELS), torch.ones(3)))
        self.assertIsInstance(pair, Pair)
        self.assertIsInstance(pair.target, OneHotArray)

    def test_dataclass(self):
        sample = adapt("cpu", Sample(onehotbatch(["a"], LABELS), "first"))
        self.assertIsInstance(sample, Sample)
        self.assertIsInstance(sample.target, OneHotArray)
        self.assertEqual(sample.name, "first")

    def test_unchanged(self):
        self.assertEqual(adapt("cpu", "text"), "text")
        self.assertIs(adapt("cpu", Sample), Sample)


@requires_cuda
class TestCuda(unittest.TestCase):
    def test_move(self):
        x = onehotbatch(["b", "c", "a"], LABELS)
        y = x.cuda()
        self.assertEqual(y.backing, Backing.Accelerator)
        self.assertEqual(y.to_dense().device.type, "cuda")
        self.assertTrue(torch.equal(y.cpu(), x))
        self.assertEqual(adapt("cuda", x).device.type, "cuda")

    def test_onecold(self):
        x = onehotbatch(["b", "c", "a"], LABELS).cuda()
        self.assertEqual(onecold(x, LABELS), ["b", "c", "a"])
        positions = onecold(x)
        self.assertEqual(positions.device.type, "cuda")
        decoded = onecold(x, torch.tensor([10, 20, 30]))
        self.assertEqual(decoded.device.type, "cuda")

    def test_matmul(self):
        x = onehotbatch(["b", "c", "a"], LABELS).cuda()
        a = torch.arange(6.0).reshape(2, 3).cuda()
        self.assertTrue(torch.equal((a @ x).cpu(), a.cpu()[:, [1, 2, 0]]))
