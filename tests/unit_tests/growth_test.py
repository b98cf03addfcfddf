import unittest

from spacealloc.errors import NoDiskSpaceError
from spacealloc.growth import Chunk, adjusted_size_after_ceil, distribute_space, total_weight
from spacealloc.planned import PlannedPartition
from spacealloc.size import Size


class DistributeSpaceTestCase(unittest.TestCase):

    def test_weighted_growth(self):
        """ The surplus is shared in proportion to the weights. """
        requests = [PlannedPartition(min_size=Size("2 GiB"), weight=1),
                    PlannedPartition(min_size=Size("2 GiB"), weight=3)]
        result = distribute_space(requests, Size("12 GiB"), align_grain=Size("1 MiB"))

        self.assertEqual([r.size for r in result], [Size("4 GiB"), Size("8 GiB")])

        # the input is left alone
        self.assertEqual([r.size for r in requests], [Size(0), Size(0)])
        self.assertEqual([r.planned_id for r in result], [r.planned_id for r in requests])

    def test_max_size_caps_growth(self):
        """ Space a request cannot take goes to the other requests. """
        requests = [PlannedPartition(min_size=Size("1 GiB"), max_size=Size("2 GiB"), weight=1),
                    PlannedPartition(min_size=Size("1 GiB"), weight=1)]
        result = distribute_space(requests, Size("10 GiB"), align_grain=Size("1 MiB"))

        self.assertEqual(result[0].size, Size("2 GiB"))
        self.assertEqual(result[1].size, Size("8 GiB"))

    def test_conservation(self):
        """ Growth never goes beyond the region and never below the minimum. """
        requests = [PlannedPartition(min_size=Size("100 MiB"), max_size=Size("500 MiB"), weight=2),
                    PlannedPartition(min_size=Size("300 MiB"), weight=5),
                    PlannedPartition(min_size=Size("1 GiB"), weight=1)]
        space = Size("7 GiB")
        result = distribute_space(requests, space, align_grain=Size("1 MiB"))

        self.assertLessEqual(Size.sum(r.size for r in result), space)
        for (req, new) in zip(requests, result):
            self.assertGreaterEqual(new.size, req.min_size)
            self.assertLessEqual(new.size, req.max_size)

        # nothing is left over since one request can take everything
        self.assertEqual(Size.sum(r.size for r in result), space)

    def test_zero_weight(self):
        """ Requests with no weight just get their minimum. """
        requests = [PlannedPartition(min_size=Size("1 GiB")),
                    PlannedPartition(min_size=Size("2 GiB"))]
        result = distribute_space(requests, Size("10 GiB"), align_grain=Size("1 MiB"))

        self.assertEqual([r.size for r in result], [Size("1 GiB"), Size("2 GiB")])

    def test_all_at_max(self):
        requests = [PlannedPartition(min_size=Size("1 GiB"), max_size=Size("1 GiB"), weight=5),
                    PlannedPartition(min_size=Size("1 GiB"), max_size=Size("3 GiB"), weight=5)]
        result = distribute_space(requests, Size("20 GiB"), align_grain=Size("1 MiB"))

        self.assertEqual([r.size for r in result], [Size("1 GiB"), Size("3 GiB")])

    def test_monotonic(self):
        """ A bigger region never makes a request smaller. """
        def sizes(space):
            requests = [PlannedPartition(min_size=Size("1 GiB"), weight=1, planned_id="a"),
                        PlannedPartition(min_size=Size("3 GiB"), max_size=Size("6 GiB"), weight=2,
                                         planned_id="b")]
            return [r.size for r in distribute_space(requests, space, align_grain=Size("1 MiB"))]

        previous = sizes(Size("4 GiB"))
        for gib in (5, 8, 13, 21):
            current = sizes(Size("%d GiB" % gib))
            for (old, new) in zip(previous, current):
                self.assertGreaterEqual(new, old)
            previous = current

    def test_not_enough_space(self):
        requests = [PlannedPartition(min_size=Size("5 GiB"))]
        with self.assertRaises(NoDiskSpaceError):
            distribute_space(requests, Size("4 GiB"))

    def test_empty(self):
        self.assertEqual(distribute_space([], Size("1 GiB")), [])

    def test_unaligned_region_end(self):
        """ The last request gives up the incomplete grain at the end. """
        requests = [PlannedPartition(min_size=Size("10 MiB"), max_size=Size("10 MiB")),
                    PlannedPartition(min_size=Size("10 MiB"), max_size=Size("10.5 MiB"))]
        space = Size("20.5 MiB")
        result = distribute_space(requests, space, align_grain=Size("1 MiB"))

        self.assertEqual(result[0].size, Size("10 MiB"))
        self.assertEqual(result[1].size, Size("10.5 MiB"))
        self.assertEqual(Size.sum(r.size for r in result), space)

    def test_rounding(self):
        """ Sizes are multiples of the rounding. """
        requests = [PlannedPartition(min_size=Size("1 MiB"), weight=1),
                    PlannedPartition(min_size=Size("1 MiB"), weight=2)]
        result = distribute_space(requests, Size("100 MiB"), rounding=Size("4 MiB"))

        for req in result:
            self.assertEqual(req.size % Size("4 MiB"), Size(0))
        self.assertLessEqual(Size.sum(r.size for r in result), Size("100 MiB"))


class ChunkTestCase(unittest.TestCase):

    def test_pool(self):
        requests = [PlannedPartition(min_size=Size("1.5 MiB")),
                    PlannedPartition(min_size=Size("1 MiB"))]
        chunk = Chunk(Size("10 MiB"), requests=requests, rounding=Size("1 MiB"))

        # minimum sizes are rounded up when added
        self.assertEqual(requests[0].size, Size("2 MiB"))
        self.assertEqual(chunk.pool, Size("7 MiB"))
        self.assertTrue(chunk.distributable(chunk.pool))
        self.assertFalse(chunk.distributable(Size("0.5 MiB")))

    def test_growable(self):
        requests = [PlannedPartition(min_size=Size("1 MiB"), max_size=Size("1 MiB")),
                    PlannedPartition(min_size=Size("1 MiB"))]
        chunk = Chunk(Size("10 MiB"), requests=requests)
        self.assertEqual(chunk.growable(), [requests[1]])

    def test_grow_requests_leftover(self):
        requests = [PlannedPartition(min_size=Size("1 MiB"), max_size=Size("2 MiB"), weight=1)]
        chunk = Chunk(Size("10 MiB"), requests=requests, rounding=Size("1 MiB"))
        self.assertEqual(chunk.grow_requests(), Size("8 MiB"))
        self.assertEqual(requests[0].size, Size("2 MiB"))

    def test_total_weight(self):
        requests = [PlannedPartition(weight=1), PlannedPartition(weight=2.5)]
        self.assertEqual(total_weight(requests), 3.5)
        self.assertEqual(total_weight([]), 0)

    def test_adjusted_size_after_ceil(self):
        grain = Size("1 MiB")
        req = PlannedPartition(min_size=Size("4 MiB"))
        req.size = Size("4 MiB")
        self.assertEqual(adjusted_size_after_ceil(req, Size("10 MiB"), grain), Size("4 MiB"))
        self.assertEqual(adjusted_size_after_ceil(req, Size("10.25 MiB"), grain), Size("3.25 MiB"))
