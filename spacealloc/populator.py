# populator.py
# Building a devicegraph from the udev database.
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

import re

from . import udev
from . import util
from .devicegraph import Devicegraph, Disk, Partition
from .devicegraph import FIRST_LOGICAL_NUMBER, PartitionTableType, PartitionType
from .partition_id import PartitionId, WINDOWS_SYSTEM_IDS
from .size import Size
from .storage_log import log_exception_info, log_method_call

import logging
log = logging.getLogger("spacealloc")

PTABLE_TYPES = {"dos": PartitionTableType.MSDOS,
                "gpt": PartitionTableType.GPT}

_NTFS_MIN_SIZE_RE = re.compile(r'You might resize at (\d+) bytes')


def ntfs_min_size(devspec):
    """ The size an NTFS filesystem can be shrunk to, None if unknown.

        :param str devspec: the device node, eg: "/dev/sda1"
    """
    argv = ["ntfsresize", "--info", "--force", "--no-progress-bar", devspec]
    try:
        out = util.capture_output(argv)
    except OSError:
        log_exception_info(log.info, "cannot find out the minimal size of %s", [devspec])
        return None

    for line in out.splitlines():
        m = _NTFS_MIN_SIZE_RE.search(line)
        if m:
            return Size(int(m.group(1)))

    log.info("no minimal size reported for %s", devspec)
    return None


class Populator(object):

    """ Turns udev block device records into a :class:`~.devicegraph.Devicegraph`.

        Only disks and their partitions are taken into account. Optical
        drives, device-mapper, md and loop devices are skipped.
    """

    def __init__(self, udev_devices=None, probe_resize=True):
        """
            :keyword udev_devices: udev records to use instead of the ones
                                   of the running system
            :type udev_devices: list of dict
            :keyword bool probe_resize: whether to ask filesystem tools how
                                        much Windows partitions can shrink
        """
        self._udev_devices = udev_devices
        self.probe_resize = probe_resize

    def populate(self):
        """ Build a new devicegraph.

            :rtype: :class:`~.devicegraph.Devicegraph`
        """
        devices = self._udev_devices
        if devices is None:
            devices = udev.get_devices()

        disks = []
        disks_by_majorminor = {}
        for info in devices:
            if udev.device_is_disk(info):
                disk = self.handle_disk(info)
                if disk is None:
                    continue
                disks.append(disk)
                majorminor = "%d:%d" % (udev.device_get_major(info), udev.device_get_minor(info))
                disks_by_majorminor[majorminor] = disk

        disks_by_name = dict((d.name, d) for d in disks)
        partitions = []
        for info in devices:
            if not udev.device_is_partition(info):
                continue
            disk = disks_by_majorminor.get(udev.device_get_partition_disk_majorminor(info))
            if disk is None:
                disk = disks_by_name.get(udev.device_get_sysfs_partition_disk(info))
            if disk is None:
                log.error("failure scanning partition %s: no disk", udev.device_get_name(info))
                continue
            part = self.handle_partition(info, disk)
            if part is not None:
                partitions.append(part)

        # partitions on a disk with an unknown table cannot be trusted
        for disk in disks:
            if disk.ptable_type is None and not disk.label_error and \
                    any(p.disk == disk.name for p in partitions):
                disk.label_error = "unrecognized partition table"

        graph = Devicegraph(disks=disks, partitions=partitions)
        log.info("populated %r", graph)
        return graph

    def handle_disk(self, info):
        name = udev.device_get_name(info)
        log_method_call(self, name=name)
        size = udev.device_get_size(info)
        if not size:
            log.info("skipping %s: no size", name)
            return None

        label_type = udev.device_get_disklabel_type(info)
        ptable_type = PTABLE_TYPES.get(label_type)
        label_error = None
        if label_type is not None and ptable_type is None:
            label_error = "unsupported partition table type %s" % label_type

        sector_size = util.get_sysfs_attr(udev.device_get_sysfs_path(info),
                                          "queue/logical_block_size")
        disk = Disk(name, size,
                    path=udev.device_get_devname(info),
                    transport=udev.device_get_bus(info).lower() or None,
                    ptable_type=ptable_type,
                    sector_size=int(sector_size) if sector_size else udev.SECTOR_SIZE,
                    label_error=label_error)
        log.debug("found disk %r", disk)
        return disk

    def handle_partition(self, info, disk):
        name = udev.device_get_name(info)
        log_method_call(self, name=name, disk=disk.name)
        start = udev.device_get_part_offset(info)
        size = udev.device_get_part_size(info)
        if start is None or size is None:
            log.error("skipping %s: no position on %s", name, disk.name)
            return None

        part_id = self._partition_id(info, disk)
        number = udev.device_get_part_number(info)
        if part_id == PartitionId.EXTENDED:
            part_type = PartitionType.EXTENDED
        elif (disk.ptable_type == PartitionTableType.MSDOS and number is not None and
              number >= FIRST_LOGICAL_NUMBER):
            part_type = PartitionType.LOGICAL
        else:
            part_type = PartitionType.PRIMARY

        resize_min = None
        if self.probe_resize and part_id in WINDOWS_SYSTEM_IDS and udev.device_get_format(info) == "ntfs":
            resize_min = ntfs_min_size(udev.device_get_devname(info) or "/dev/%s" % name)

        part = Partition(name, disk.name, start, size, id=part_id, type=part_type,
                         resize_min=resize_min, label=udev.device_get_label(info))
        log.debug("found partition %r", part)
        return part

    @staticmethod
    def _partition_id(info, disk):
        part_type = udev.device_get_part_type(info)
        if not part_type:
            return PartitionId.UNKNOWN

        if disk.ptable_type == PartitionTableType.GPT:
            return PartitionId.from_gpt(part_type)

        try:
            return PartitionId.from_mbr(part_type)
        except ValueError:
            log.warning("invalid partition type %s for %s", part_type, udev.device_get_name(info))
            return PartitionId.UNKNOWN
