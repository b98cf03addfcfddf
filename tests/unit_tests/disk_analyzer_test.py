import os
import shutil
import tempfile
import unittest
from contextlib import contextmanager
from unittest.mock import Mock, patch

from spacealloc.devicegraph import Devicegraph, Disk, Partition, PartitionTableType, PartitionType
from spacealloc.disk_analyzer import DiskAnalyzer
from spacealloc.errors import MountError
from spacealloc.flags import flags
from spacealloc.partition_id import PartitionId
from spacealloc.size import Size

MiB = Size("1 MiB")
GiB = Size("1 GiB")


class DiskAnalyzerTestCase(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp(prefix="spacealloc-test-")
        self.check_file = os.path.join(self.tmpdir, "control.xml")
        with open(self.check_file, "w") as f:
            f.write("<productDefines/>\n")

        # devspec -> directory standing for its contents
        self.volumes = {}
        self.mount_helper = Mock()
        self.mount_helper.mounted.side_effect = self._mounted

        patcher = patch.object(flags, "installation_check_file", self.check_file)
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    @contextmanager
    def _mounted(self, devspec):
        if devspec not in self.volumes:
            raise MountError("cannot mount %s" % devspec, dev_name=devspec)
        yield self.volumes[devspec]

    def _volume(self, devspec, installer=False, windows=False):
        path = tempfile.mkdtemp(dir=self.tmpdir)
        if installer:
            copy = os.path.join(path, self.check_file.lstrip("/"))
            os.makedirs(os.path.dirname(copy))
            shutil.copy(self.check_file, copy)
        if windows:
            os.makedirs(os.path.join(path, "windows", "system32"))
        self.volumes[devspec] = path

    def _analyzer(self, **kwargs):
        kwargs.setdefault("check_windows", False)
        return DiskAnalyzer(mount_helper=self.mount_helper, **kwargs)

    def test_installation_disk(self):
        """ The USB disk with the installer is not a candidate. """
        graph = Devicegraph(disks=[Disk("sda", 100 * GiB), Disk("sdb", 8 * GiB, transport="usb")],
                            partitions=[Partition("sda1", "sda", MiB, 50 * GiB),
                                        Partition("sdb1", "sdb", MiB, 4 * GiB, id=PartitionId.DOS32)])
        self._volume("/dev/sda1")
        self._volume("/dev/sdb1", installer=True)

        analyzer = self._analyzer()
        analysis = analyzer.analyze(graph)
        self.assertEqual(analysis.installation_disks, ["sdb"])
        self.assertEqual(analysis.candidate_disks, ["sda"])
        self.assertEqual(analyzer.candidate_disks, ["sda"])
        self.assertEqual([p.name for p in analysis.linux_partitions["sda"]], ["sda1"])

        # USB disks are checked first
        self.assertEqual(self.mount_helper.mounted.call_args_list[0][0], ("/dev/sdb1",))

    def test_different_file(self):
        graph = Devicegraph(disks=[Disk("sda", 100 * GiB, transport="usb")],
                            partitions=[Partition("sda1", "sda", MiB, 50 * GiB)])
        self._volume("/dev/sda1", installer=True)
        with open(os.path.join(self.volumes["/dev/sda1"], self.check_file.lstrip("/")), "w") as f:
            f.write("something else\n")

        analysis = self._analyzer().analyze(graph)
        self.assertEqual(analysis.installation_disks, [])
        self.assertEqual(analysis.candidate_disks, ["sda"])

    def test_unpartitioned_installation_disk(self):
        graph = Devicegraph(disks=[Disk("sda", 100 * GiB), Disk("sdb", 8 * GiB, ptable_type=None)])
        self._volume("/dev/sdb", installer=True)

        analysis = self._analyzer().analyze(graph)
        self.assertEqual(analysis.installation_disks, ["sdb"])
        self.assertEqual(analysis.candidate_disks, ["sda"])

    def test_skipped_partitions(self):
        """ Swap, extended and LVM partitions are never mounted. """
        graph = Devicegraph(disks=[Disk("sda", 100 * GiB)],
                            partitions=[Partition("sda1", "sda", MiB, GiB, id=PartitionId.SWAP),
                                        Partition("sda2", "sda", GiB + MiB, 50 * GiB, id=PartitionId.EXTENDED,
                                                  type=PartitionType.EXTENDED),
                                        Partition("sda5", "sda", GiB + 2 * MiB, 10 * GiB, id=PartitionId.LVM,
                                                  type=PartitionType.LOGICAL)])
        analysis = self._analyzer().analyze(graph)
        self.mount_helper.mounted.assert_not_called()
        self.assertEqual(analysis.installation_disks, [])
        self.assertEqual([p.name for p in analysis.swap_partitions["sda"]], ["sda1"])
        self.assertEqual([p.name for p in analysis.linux_partitions["sda"]], ["sda1", "sda5"])

    def test_candidate_fallbacks(self):
        graph = Devicegraph(disks=[Disk("sda", 100 * GiB, ptable_type=None),
                                   Disk("sdb", 8 * GiB, transport="usb", ptable_type=None),
                                   Disk("sdc", 8 * GiB, transport="usb", ptable_type=None)])
        self._volume("/dev/sda", installer=True)
        analysis = self._analyzer().analyze(graph)
        self.assertEqual(analysis.candidate_disks, ["sdb", "sdc"])

        self._volume("/dev/sdb", installer=True)
        self._volume("/dev/sdc", installer=True)
        analysis = self._analyzer().analyze(graph)
        self.assertEqual(analysis.installation_disks, ["sdb", "sdc", "sda"])
        self.assertEqual(analysis.candidate_disks, ["sda"])

        graph = Devicegraph(disks=[Disk("sdb", 8 * GiB, transport="usb", ptable_type=None)])
        analysis = self._analyzer().analyze(graph)
        self.assertEqual(analysis.candidate_disks, ["sdb"])

    def test_disk_check_limit(self):
        graph = Devicegraph(disks=[Disk("sda", 100 * GiB, ptable_type=None),
                                   Disk("sdb", 100 * GiB, ptable_type=None),
                                   Disk("sdc", 8 * GiB, transport="usb", ptable_type=None)])
        self._volume("/dev/sdb", installer=True)
        analysis = self._analyzer(disk_check_limit=2).analyze(graph)

        checked = [c[0][0] for c in self.mount_helper.mounted.call_args_list]
        self.assertEqual(checked, ["/dev/sdc", "/dev/sda"])
        self.assertEqual(analysis.installation_disks, [])

    def test_missing_check_file(self):
        graph = Devicegraph(disks=[Disk("sda", 100 * GiB, ptable_type=None)])
        self._volume("/dev/sda", installer=True)
        with patch.object(flags, "installation_check_file", os.path.join(self.tmpdir, "missing.xml")):
            analysis = self._analyzer().analyze(graph)
        self.assertEqual(analysis.installation_disks, [])
        self.mount_helper.mounted.assert_not_called()

    def test_windows_partitions(self):
        graph = Devicegraph(disks=[Disk("sda", 100 * GiB)],
                            partitions=[Partition("sda1", "sda", MiB, 500 * MiB, id=PartitionId.NTFS),
                                        Partition("sda2", "sda", 501 * MiB, 50 * GiB, id=PartitionId.NTFS),
                                        Partition("sda3", "sda", 51 * GiB, 10 * GiB, id=PartitionId.DOS32)])
        self._volume("/dev/sda1")
        self._volume("/dev/sda2", windows=True)

        analysis = self._analyzer(check_windows=True).analyze(graph)
        self.assertEqual([p.name for p in analysis.windows_partitions["sda"]], ["sda2"])
        self.assertEqual([p.name for p in analysis.all_windows_partitions], ["sda2"])

        uname = ("Linux", "host", "6.0", "#1", "s390x")
        with patch("spacealloc.disk_analyzer.os.uname", return_value=uname):
            with self.assertLogs("spacealloc", level="INFO") as logs:
                analysis = self._analyzer(check_windows=False).analyze(graph)
        self.assertEqual(analysis.all_windows_partitions, [])
        self.assertIn("not looking for Windows partitions on s390x", "\n".join(logs.output))

    def test_no_windows_with_linux(self):
        graph = Devicegraph(disks=[Disk("sda", 100 * GiB)],
                            partitions=[Partition("sda1", "sda", MiB, 50 * GiB, id=PartitionId.NTFS),
                                        Partition("sda2", "sda", 51 * GiB, 10 * GiB)])
        self._volume("/dev/sda1", windows=True)

        analysis = self._analyzer(check_windows=True).analyze(graph)
        self.assertEqual(analysis.all_windows_partitions, [])
        self.assertEqual([p.name for p in analysis.all_linux_partitions], ["sda2"])

    def test_label_error(self):
        graph = Devicegraph(disks=[Disk("sda", 100 * GiB, label_error="corrupt GPT"),
                                   Disk("sdb", 100 * GiB)],
                            partitions=[Partition("sda1", "sda", MiB, 50 * GiB)])
        analysis = self._analyzer().analyze(graph)
        self.assertEqual(analysis.candidate_disks, ["sda", "sdb"])
        self.assertEqual(analysis.linux_partitions["sda"], [])
        self.assertEqual(analysis.mbr_gap, {"sda": Size(0), "sdb": Size(0)})

    def test_efi_and_mbr_gap(self):
        graph = Devicegraph(disks=[Disk("sda", 100 * GiB), Disk("sdb", 100 * GiB, ptable_type=PartitionTableType.GPT)],
                            partitions=[Partition("sda1", "sda", 2 * MiB, GiB),
                                        Partition("sdb1", "sdb", MiB, 200 * MiB, id=PartitionId.ESP)])
        analysis = self._analyzer().analyze(graph)
        self.assertEqual(analysis.mbr_gap["sda"], 2 * MiB)
        self.assertEqual(analysis.mbr_gap["sdb"], Size(0))
        self.assertEqual([p.name for p in analysis.efi_partitions["sdb"]], ["sdb1"])
        self.assertEqual(analysis.efi_partitions["sda"], [])

    def test_boot_partitions(self):
        graph = Devicegraph(disks=[Disk("sda", 100 * GiB), Disk("sdb", 100 * GiB, ptable_type=PartitionTableType.GPT)],
                            partitions=[Partition("sda1", "sda", MiB, 8 * MiB, id=PartitionId.PREP),
                                        Partition("sda2", "sda", 9 * MiB, 10 * GiB),
                                        Partition("sdb1", "sdb", MiB, MiB, id=PartitionId.BIOS_BOOT),
                                        Partition("sdb2", "sdb", 2 * MiB, 8 * MiB, id=PartitionId.PREP)])
        analyzer = self._analyzer()
        analysis = analyzer.analyze(graph)
        self.assertEqual([p.name for p in analysis.prep_partitions["sda"]], ["sda1"])
        self.assertEqual([p.name for p in analysis.prep_partitions["sdb"]], ["sdb2"])
        self.assertEqual(analysis.grub_partitions["sda"], [])
        self.assertEqual([p.name for p in analyzer.grub_partitions["sdb"]], ["sdb1"])
        self.assertEqual(analyzer.prep_partitions, analysis.prep_partitions)

        # neither of them is a Linux system partition
        self.assertEqual([p.name for p in analysis.all_linux_partitions], ["sda2"])


class PartitionIdTestCase(unittest.TestCase):

    def test_from_mbr(self):
        self.assertEqual(PartitionId.from_mbr("0x83"), PartitionId.LINUX)
        self.assertEqual(PartitionId.from_mbr(0x41), PartitionId.PREP)
        self.assertEqual(PartitionId.from_mbr("0x0f"), PartitionId.EXTENDED)
        self.assertEqual(PartitionId.from_mbr(0x0b), PartitionId.DOS32)
        self.assertEqual(PartitionId.from_mbr(0x42), PartitionId.UNKNOWN)
        # no MBR id stands for a BIOS boot partition
        self.assertEqual(PartitionId.from_mbr(PartitionId.BIOS_BOOT.value), PartitionId.UNKNOWN)

    def test_from_gpt(self):
        self.assertEqual(PartitionId.from_gpt("21686148-6449-6E6F-744E-656564454649"), PartitionId.BIOS_BOOT)
        self.assertEqual(PartitionId.from_gpt("9e1a2d38-c612-4316-aa26-8b49521e5a8b"), PartitionId.PREP)
        self.assertEqual(PartitionId.from_gpt("c12a7328-f81f-11d2-ba4b-00a0c93ec93b"), PartitionId.ESP)
        self.assertEqual(PartitionId.from_gpt("00000000-0000-0000-0000-000000000000"), PartitionId.UNKNOWN)
