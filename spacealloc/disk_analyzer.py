# disk_analyzer.py
# Classification of the disks and partitions found in a devicegraph.
#
# Copyright (C) 2009-2015  Red Hat, Inc.
#
# This copyrighted material is made available to anyone wishing to use,
# modify, copy, or redistribute it subject to the terms and conditions of
# the GNU General Public License v.2, or (at your option) any later version.
# This program is distributed in the hope that it will be useful, but WITHOUT
# ANY WARRANTY expressed or implied, including the implied warranties of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU General
# Public License for more details.  You should have received a copy of the
# GNU General Public License along with this program; if not, write to the
# Free Software Foundation, Inc., 51 Franklin Street, Fifth Floor, Boston, MA
# 02110-1301, USA.  Any Red Hat trademarks that are incorporated in the
# source code or documentation are not subject to the GNU General Public
# License and may only be used or replicated with the express permission of
# Red Hat, Inc.
#

import os
from collections import OrderedDict

from . import arch
from . import util
from .devicegraph import PartitionTableType
from .errors import DiskLabelScanError, MountError
from .flags import flags
from .mounts import MountHelper
from .partition_id import PartitionId
from .partition_id import LINUX_SYSTEM_IDS, WINDOWS_SYSTEM_IDS, NO_INSTALLATION_IDS
from .size import Size
from .storage_log import log_exception_info

import logging
log = logging.getLogger("spacealloc")


class DiskAnalysis(object):

    """ What a :class:`DiskAnalyzer` found out about a devicegraph.

        The partition attributes map every candidate disk name to the list
        of matching partitions on it.
    """

    def __init__(self):
        self.installation_disks = []
        self.candidate_disks = []
        self.linux_partitions = OrderedDict()
        self.windows_partitions = OrderedDict()
        self.efi_partitions = OrderedDict()
        self.swap_partitions = OrderedDict()
        self.prep_partitions = OrderedDict()
        self.grub_partitions = OrderedDict()
        self.mbr_gap = OrderedDict()

    def __repr__(self):
        return ("<DiskAnalysis installation=%s candidates=%s linux=%s windows=%s>" %
                (self.installation_disks, self.candidate_disks,
                 _names(self.linux_partitions), _names(self.windows_partitions)))

    @staticmethod
    def _flatten(partitions_by_disk):
        return [p for parts in partitions_by_disk.values() for p in parts]

    @property
    def all_linux_partitions(self):
        return self._flatten(self.linux_partitions)

    @property
    def all_windows_partitions(self):
        return self._flatten(self.windows_partitions)


def _names(partitions_by_disk):
    return dict((disk, [p.name for p in parts]) for (disk, parts) in partitions_by_disk.items())


class DiskAnalyzer(object):

    """ Finds out which disks can be used for installing and what is on them.

        The analysis runs once per devicegraph: it mounts volumes to look
        for the installation medium and for Windows systems, which is
        expensive.
    """

    def __init__(self, mount_helper=None, disk_check_limit=None, check_windows=None):
        """
            :keyword mount_helper: used to look inside volumes
            :type mount_helper: :class:`~.mounts.MountHelper`
            :keyword int disk_check_limit: how many disks to check for the
                                           installation medium at most
            :keyword bool check_windows: whether to look for Windows
                                         partitions, only on x86 by default
        """
        self.mount_helper = mount_helper if mount_helper is not None else MountHelper()
        if disk_check_limit is None:
            disk_check_limit = flags.disk_check_limit
        self.disk_check_limit = disk_check_limit
        if check_windows is None:
            check_windows = arch.is_x86()
        self.check_windows = check_windows

        self.devicegraph = None
        self.analysis = DiskAnalysis()

    @property
    def installation_disks(self):
        return self.analysis.installation_disks

    @property
    def candidate_disks(self):
        return self.analysis.candidate_disks

    @property
    def linux_partitions(self):
        return self.analysis.linux_partitions

    @property
    def windows_partitions(self):
        return self.analysis.windows_partitions

    @property
    def efi_partitions(self):
        return self.analysis.efi_partitions

    @property
    def swap_partitions(self):
        return self.analysis.swap_partitions

    @property
    def prep_partitions(self):
        return self.analysis.prep_partitions

    @property
    def grub_partitions(self):
        return self.analysis.grub_partitions

    @property
    def mbr_gap(self):
        return self.analysis.mbr_gap

    def analyze(self, devicegraph):
        """ Analyze a devicegraph.

            :param devicegraph: the devicegraph, it is not modified
            :type devicegraph: :class:`~.devicegraph.Devicegraph`
            :returns: the results, also available as analyzer attributes
            :rtype: :class:`DiskAnalysis`
        """
        self.devicegraph = devicegraph
        self.analysis = analysis = DiskAnalysis()

        analysis.installation_disks = self._find_installation_disks()
        analysis.candidate_disks = self._find_candidate_disks()
        analysis.linux_partitions = self._partitions_with_id(LINUX_SYSTEM_IDS)
        analysis.efi_partitions = self._partitions_with_id([PartitionId.ESP])
        analysis.swap_partitions = self._partitions_with_id([PartitionId.SWAP])
        analysis.prep_partitions = self._partitions_with_id([PartitionId.PREP])
        analysis.grub_partitions = self._partitions_with_id([PartitionId.BIOS_BOOT])
        analysis.mbr_gap = self._find_mbr_gap()

        if analysis.all_linux_partitions:
            log.info("Linux partitions found - not checking for Windows partitions")
        else:
            analysis.windows_partitions = self._find_windows_partitions()

        log.info("installation disks: %s", analysis.installation_disks)
        log.info("candidate disks: %s", analysis.candidate_disks)
        log.info("linux partitions: %s", _names(analysis.linux_partitions))
        log.info("windows partitions: %s", _names(analysis.windows_partitions))
        log.info("efi partitions: %s", _names(analysis.efi_partitions))
        log.info("swap partitions: %s", _names(analysis.swap_partitions))
        log.info("prep partitions: %s", _names(analysis.prep_partitions))
        log.info("grub partitions: %s", _names(analysis.grub_partitions))
        log.info("mbr gap: %s", dict((k, str(v)) for (k, v) in analysis.mbr_gap.items()))
        return analysis

    #
    # disks
    #
    def _partitions(self, disk):
        """ The partitions on a disk, none if its partition table is unreadable. """
        try:
            return self.devicegraph.partitions(disk)
        except DiskLabelScanError:
            log_exception_info(log.warning, "cannot read the partition table of %s", [disk])
            return []

    def _find_installation_disks(self):
        disks = self.devicegraph.disks
        usb = [d for d in disks if d.usb]
        non_usb = [d for d in disks if not d.usb]
        disks = usb + non_usb
        if len(disks) > self.disk_check_limit:
            disks = disks[:self.disk_check_limit]
            log.info("installation disk check limit exceeded - only checking %s", [d.name for d in disks])

        return [d.name for d in disks if self._installation_disk(d)]

    def _find_candidate_disks(self):
        installation = self.analysis.installation_disks
        disks = self.devicegraph.disks
        usb = [d for d in disks if d.usb]
        non_usb = [d for d in disks if not d.usb]
        log.info("USB disks: %s", [d.name for d in usb])
        log.info("non-USB disks: %s", [d.name for d in non_usb])

        candidates = [d.name for d in non_usb if d.name not in installation]
        if candidates:
            return candidates

        log.info("no non-USB candidate disks left after eliminating installation disks, "
                 "trying with USB disks")
        candidates = [d.name for d in usb if d.name not in installation]
        if candidates:
            return candidates

        log.info("no candidate disks left, trying with non-USB installation disks")
        candidates = [d.name for d in non_usb if d.name in installation]
        if candidates:
            return candidates

        log.info("still no candidate disks left, trying with installation disks out of sheer desperation")
        return list(installation)

    def _installation_disk(self, disk):
        log.info("checking if %s is an installation disk", disk.name)
        if disk.ptable_type is not None and not disk.label_error:
            for part in self._partitions(disk):
                if part.id in NO_INSTALLATION_IDS:
                    log.debug("skipping %s (%s)", part.name, part.id.name)
                    continue
                if self._installation_volume(part.path):
                    return True
            return False

        return self._installation_volume(disk.path)

    def _installation_volume(self, devspec):
        check_file = flags.installation_check_file
        if not os.path.exists(check_file):
            log.error("check file %s does not exist in the running system", check_file)
            return False

        is_inst = self._mount_and_check(devspec, lambda mp: self._same_file(check_file, mp))
        if is_inst:
            log.info("%s is an installation volume", devspec)
        return is_inst

    @staticmethod
    def _same_file(check_file, mountpoint):
        copy = os.path.join(mountpoint, check_file.lstrip("/"))
        if not os.path.exists(copy):
            return False
        return util.sha256_file(copy) == util.sha256_file(check_file)

    def _mount_and_check(self, devspec, check):
        try:
            with self.mount_helper.mounted(devspec) as mountpoint:
                return check(mountpoint)
        except MountError:
            log_exception_info(log.info, "cannot look inside %s", [devspec])
            return False

    #
    # partitions
    #
    def _partitions_with_id(self, ids):
        result = OrderedDict()
        for disk in self.analysis.candidate_disks:
            result[disk] = [p for p in self._partitions(disk) if not p.is_extended and p.id in ids]
        return result

    def _find_windows_partitions(self):
        result = OrderedDict()
        if not self.check_windows:
            log.info("not looking for Windows partitions on %s", os.uname()[4])
            return result

        for disk in self.analysis.candidate_disks:
            parts = [p for p in self._partitions(disk) if self._windows_partition(p)]
            if parts:
                result[disk] = parts
        return result

    def _windows_partition(self, part):
        if part.is_extended or part.id not in WINDOWS_SYSTEM_IDS:
            return False

        log.info("checking if %s is a windows partition", part.name)
        check_path = flags.windows_check_path
        is_win = self._mount_and_check(part.path,
                                       lambda mp: os.path.isdir(os.path.join(mp, check_path)))
        if is_win:
            log.info("%s is a windows partition", part.name)
        return is_win

    def _find_mbr_gap(self):
        """ Space in front of the first partition of every MS-DOS disk. """
        gaps = OrderedDict()
        for name in self.analysis.candidate_disks:
            disk = self.devicegraph.get_disk(name)
            gap = Size(0)
            if disk.ptable_type == PartitionTableType.MSDOS:
                parts = self._partitions(disk)
                if parts:
                    gap = parts[0].start
            gaps[name] = gap
        return gaps
