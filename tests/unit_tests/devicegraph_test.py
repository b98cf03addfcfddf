import unittest
from unittest.mock import patch

from spacealloc.devicegraph import Devicegraph, Disk, Partition, FreeRegion
from spacealloc.devicegraph import PartitionTableType, PartitionType
from spacealloc.errors import DeviceNotFoundError, DeviceResizeError, DeviceTreeError
from spacealloc.errors import DiskLabelScanError, PartitioningError
from spacealloc.flags import flags
from spacealloc.partition_id import PartitionId
from spacealloc.size import Size

MiB = Size("1 MiB")
GiB = Size("1 GiB")


def _extended_graph():
    """ sda1 primary, sda2 extended holding sda5 and free space after it. """
    disk = Disk("sda", 100 * GiB)
    parts = [Partition("sda1", "sda", MiB, 10 * GiB),
             Partition("sda2", "sda", 10 * GiB + MiB, 50 * GiB, id=PartitionId.EXTENDED,
                       type=PartitionType.EXTENDED),
             Partition("sda5", "sda", 10 * GiB + 2 * MiB, 5 * GiB, type=PartitionType.LOGICAL)]
    return Devicegraph(disks=[disk], partitions=parts)


class DiskTestCase(unittest.TestCase):

    def test_defaults(self):
        disk = Disk("sda", "10 GiB")
        self.assertEqual(disk.size, 10 * GiB)
        self.assertEqual(disk.path, "/dev/sda")
        self.assertEqual(disk.align_grain, MiB)
        self.assertEqual(disk.ptable_type, PartitionTableType.MSDOS)
        self.assertFalse(disk.usb)
        self.assertTrue(Disk("sdb", "10 GiB", transport="usb").usb)

    def test_usable_area(self):
        disk = Disk("sda", 10 * GiB)
        self.assertEqual(disk.usable_start, MiB)
        self.assertEqual(disk.usable_end, 10 * GiB)

        # the backup GPT lives at the end of the disk
        disk = Disk("sda", 10 * GiB, ptable_type=PartitionTableType.GPT)
        self.assertEqual(disk.usable_end, 10 * GiB - Size(33 * 512))


class PartitionTableTestCase(unittest.TestCase):

    def test_msdos(self):
        graph = _extended_graph()
        ptable = graph.partition_table("sda")
        self.assertTrue(ptable.extended_possible)
        self.assertEqual(ptable.max_primary, 4)
        self.assertEqual(ptable.max_logical, 252)
        # the extended partition is not a primary one, but it takes a slot
        self.assertEqual(ptable.num_primary, 1)
        self.assertEqual(ptable.num_logical, 1)
        self.assertEqual(ptable.free_primary_slots, 2)
        self.assertTrue(ptable.has_extended)
        self.assertEqual(ptable.extended.name, "sda2")

    def test_gpt(self):
        graph = Devicegraph(disks=[Disk("sda", 10 * GiB, ptable_type=PartitionTableType.GPT)])
        ptable = graph.partition_table("sda")
        self.assertFalse(ptable.extended_possible)
        self.assertEqual(ptable.max_primary, 128)
        self.assertEqual(ptable.max_logical, 0)
        self.assertFalse(ptable.has_extended)
        self.assertIsNone(ptable.extended)

    def test_no_ptable(self):
        graph = Devicegraph(disks=[Disk("sda", 10 * GiB, ptable_type=None)])
        self.assertIsNone(graph.partition_table("sda"))
        self.assertEqual(graph.free_regions("sda"), [])

    def test_snapshot(self):
        graph = Devicegraph(disks=[Disk("sda", 10 * GiB)])
        ptable = graph.partition_table("sda")
        graph.add_partition("sda", MiB, GiB)
        self.assertEqual(ptable.num_primary, 0)
        self.assertEqual(graph.partition_table("sda").num_primary, 1)


class FreeRegionTestCase(unittest.TestCase):

    def test_equality(self):
        one = FreeRegion("sda", MiB, GiB)
        other = FreeRegion("sda", MiB, GiB, partition_type=PartitionType.PRIMARY)
        self.assertEqual(one, other)
        self.assertEqual(hash(one), hash(other))
        self.assertNotEqual(one, FreeRegion("sdb", MiB, GiB))
        self.assertNotEqual(one, one.as_growing())
        self.assertEqual(len(set([one, other, one.as_growing()])), 2)

    def test_as_growing(self):
        region = FreeRegion("sda", MiB, GiB, partition_type=PartitionType.LOGICAL)
        growing = region.as_growing(size=Size(0))
        self.assertTrue(growing.growing)
        self.assertEqual(growing.size, Size(0))
        self.assertEqual(growing.start, MiB)
        self.assertEqual(growing.partition_type, PartitionType.LOGICAL)
        self.assertFalse(region.growing)

    def test_str(self):
        region = FreeRegion("sda", MiB, GiB)
        self.assertEqual(str(region), "sda[1048576, 1073741824]")
        self.assertEqual(str(region.as_growing()), "sda[1048576, 1073741824] (growing)")
        self.assertEqual(region.end, GiB + MiB)
        self.assertEqual(region.align_grain, MiB)


class DevicegraphTestCase(unittest.TestCase):

    def test_lookups(self):
        graph = _extended_graph()
        self.assertEqual([d.name for d in graph.disks], ["sda"])
        self.assertEqual(graph.get_partition("sda5").disk, "sda")
        self.assertIsNone(graph.find_partition("sda9"))
        with self.assertRaises(DeviceNotFoundError):
            graph.get_disk("sdz")
        with self.assertRaises(DeviceNotFoundError):
            graph.get_partition("sda9")
        with self.assertRaises(DeviceTreeError):
            graph.add_disk(Disk("sda", GiB))

        self.assertEqual([p.name for p in graph.partitions("sda")], ["sda1", "sda2", "sda5"])
        self.assertEqual(graph.get_partition("sda5").number, 5)
        self.assertEqual(graph.get_partition("sda1").path, "/dev/sda1")
        self.assertEqual(graph.get_partition("sda1").end, 10 * GiB + MiB)

    def test_label_error(self):
        graph = Devicegraph(disks=[Disk("sda", 10 * GiB, label_error="corrupt GPT")])
        with self.assertRaises(DiskLabelScanError):
            graph.partitions("sda")

    def test_free_regions_empty_disk(self):
        graph = Devicegraph(disks=[Disk("sda", 10 * GiB)])
        regions = graph.free_regions("sda")
        self.assertEqual(len(regions), 1)
        self.assertEqual(regions[0].start, MiB)
        self.assertEqual(regions[0].size, 10 * GiB - MiB)
        # primary or logical partitions can still be created
        self.assertIsNone(regions[0].partition_type)
        self.assertEqual(regions[0].ptable.disk_name, "sda")

        graph = Devicegraph(disks=[Disk("sda", 10 * GiB, ptable_type=PartitionTableType.GPT)])
        regions = graph.free_regions("sda")
        self.assertEqual(regions[0].partition_type, PartitionType.PRIMARY)
        self.assertEqual(regions[0].end, 10 * GiB - Size(33 * 512))

    def test_free_regions_with_extended(self):
        graph = _extended_graph()
        regions = graph.free_regions("sda")
        self.assertEqual(len(regions), 2)

        # the EBR of the next logical partition is left out
        logical = regions[0]
        self.assertEqual(logical.partition_type, PartitionType.LOGICAL)
        self.assertEqual(logical.start, 15 * GiB + 3 * MiB)
        self.assertEqual(logical.end, 60 * GiB + MiB)

        primary = regions[1]
        self.assertEqual(primary.partition_type, PartitionType.PRIMARY)
        self.assertEqual(primary.start, 60 * GiB + MiB)
        self.assertEqual(primary.end, 100 * GiB)

    def test_free_regions_alignment(self):
        graph = Devicegraph(disks=[Disk("sda", 10 * GiB)],
                            partitions=[Partition("sda1", "sda", MiB, GiB + Size(512)),
                                        Partition("sda2", "sda", GiB + 2 * MiB + Size(512), GiB)])
        regions = graph.free_regions("sda")
        # the gap between the partitions is smaller than the grain once aligned
        self.assertEqual(len(regions), 1)
        self.assertEqual(regions[0].start, (2 * GiB + 2 * MiB + Size(512)).ceil(MiB))

    def test_add_partition(self):
        graph = Devicegraph(disks=[Disk("sda", 10 * GiB)])
        part = graph.add_partition("sda", MiB, GiB)
        self.assertEqual(part.name, "sda1")
        self.assertEqual(part.type, PartitionType.PRIMARY)
        self.assertEqual(part.id, PartitionId.LINUX)

        ext = graph.add_partition("sda", GiB + MiB, 5 * GiB, part_type=PartitionType.EXTENDED)
        self.assertEqual(ext.name, "sda2")
        self.assertEqual(ext.id, PartitionId.EXTENDED)

        logical = graph.add_partition("sda", GiB + 2 * MiB, GiB, part_type=PartitionType.LOGICAL,
                                      part_id=PartitionId.SWAP)
        self.assertEqual(logical.name, "sda5")
        self.assertEqual(logical.id, PartitionId.SWAP)

        # the EBR of a logical partition cannot overlap the previous one
        with self.assertRaises(PartitioningError):
            graph.add_partition("sda", 2 * GiB + 2 * MiB, GiB, part_type=PartitionType.LOGICAL)
        graph.add_partition("sda", 2 * GiB + 3 * MiB, GiB, part_type=PartitionType.LOGICAL)

        with self.assertRaises(PartitioningError):
            graph.add_partition("sda", 3 * GiB, GiB)
        with self.assertRaises(PartitioningError):
            graph.add_partition("sda", 9 * GiB, 2 * GiB)
        with self.assertRaises(PartitioningError):
            graph.add_partition("sda", 7 * GiB, GiB, part_type=PartitionType.EXTENDED)
        with self.assertRaises(PartitioningError):
            graph.add_partition("sda", 7 * GiB, GiB, part_type=PartitionType.LOGICAL)
        with self.assertRaises(PartitioningError):
            graph.add_partition("sda", 7 * GiB, Size(0))

    def test_add_partition_slots(self):
        graph = Devicegraph(disks=[Disk("sda", 10 * GiB)])
        for i in range(4):
            graph.add_partition("sda", MiB + i * GiB, GiB)
        with self.assertRaises(PartitioningError):
            graph.add_partition("sda", 5 * GiB, GiB)

        graph = Devicegraph(disks=[Disk("sda", 10 * GiB, ptable_type=PartitionTableType.GPT)])
        with self.assertRaises(PartitioningError):
            graph.add_partition("sda", MiB, GiB, part_type=PartitionType.EXTENDED)

        graph = Devicegraph(disks=[Disk("sda", 10 * GiB, ptable_type=None)])
        with self.assertRaises(PartitioningError):
            graph.add_partition("sda", MiB, GiB)

    def test_partition_names(self):
        graph = Devicegraph(disks=[Disk("nvme0n1", 10 * GiB, ptable_type=PartitionTableType.GPT)])
        self.assertEqual(graph.add_partition("nvme0n1", MiB, GiB).name, "nvme0n1p1")
        self.assertEqual(graph.add_partition("nvme0n1", GiB + MiB, GiB).name, "nvme0n1p2")

    def test_delete_partition(self):
        graph = _extended_graph()
        self.assertEqual(graph.delete_partition("sda1"), ["sda1"])

        # an empty extended partition goes away with its last logical partition
        self.assertEqual(graph.delete_partition("sda5"), ["sda5", "sda2"])
        self.assertEqual(graph.all_partitions, [])

        graph = _extended_graph()
        self.assertEqual(graph.delete_partition("sda2"), ["sda5", "sda2"])

        graph = _extended_graph()
        with patch.object(flags, "keep_empty_ext_partitions", True):
            self.assertEqual(graph.delete_partition("sda5"), ["sda5"])
        self.assertIsNotNone(graph.find_partition("sda2"))

    def test_resize_partition(self):
        graph = Devicegraph(disks=[Disk("sda", 10 * GiB)],
                            partitions=[Partition("sda1", "sda", MiB, 4 * GiB, id=PartitionId.NTFS,
                                                  resize_min=GiB),
                                        Partition("sda2", "sda", 6 * GiB, GiB)])
        with self.assertRaises(DeviceResizeError):
            graph.resize_partition("sda2", 2 * GiB)
        with self.assertRaises(DeviceResizeError):
            graph.resize_partition("sda1", 512 * MiB)
        with self.assertRaises(DeviceResizeError):
            graph.resize_partition("sda1", 7 * GiB)

        part = graph.resize_partition("sda1", 2 * GiB)
        self.assertEqual(part.size, 2 * GiB)
        self.assertEqual(part.start, MiB)

        # growing up to the next partition is fine
        part = graph.resize_partition("sda1", 6 * GiB - MiB)
        self.assertEqual(part.end, 6 * GiB)

    def test_copy(self):
        graph = _extended_graph()
        new = graph.copy()
        new.delete_partition("sda1")
        new.get_disk("sda").transport = "usb"
        self.assertIsNotNone(graph.find_partition("sda1"))
        self.assertIsNone(graph.get_disk("sda").transport)
        self.assertIsNot(new.get_partition("sda5"), graph.get_partition("sda5"))
