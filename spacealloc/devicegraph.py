# devicegraph.py
# In-memory representation of disks, partition tables and partitions.
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

import copy
import re

from collections import OrderedDict
from enum import Enum

from .errors import DeviceNotFoundError, DeviceResizeError, DeviceTreeError
from .errors import DiskLabelScanError, PartitioningError
from .flags import flags
from .partition_id import PartitionId
from .size import Size
from .storage_log import log_method_call

import logging
log = logging.getLogger("spacealloc")

DEFAULT_ALIGN_GRAIN = Size("1 MiB")

# the backup GPT header and entries at the end of the disk (33 sectors)
GPT_END_RESERVED_SECTORS = 33

MSDOS_MAX_PRIMARY = 4
# minors available for partitions, minus the four primary slots
MSDOS_MAX_LOGICAL = 252
GPT_MAX_PRIMARY = 128

FIRST_LOGICAL_NUMBER = 5


class PartitionType(Enum):
    PRIMARY = "primary"
    EXTENDED = "extended"
    LOGICAL = "logical"


class PartitionTableType(Enum):
    MSDOS = "msdos"
    GPT = "gpt"


class Disk(object):

    """ A partitionable block device. """

    def __init__(self, name, size, path=None, transport=None,
                 ptable_type=PartitionTableType.MSDOS, align_grain=None,
                 require_end_alignment=False, sector_size=512, label_error=None):
        """
            :param str name: the device name, eg: "sda"
            :param size: the size of the disk
            :type size: :class:`~.size.Size`
            :keyword str path: the device node, defaults to /dev/<name>
            :keyword str transport: the bus the disk is attached to, eg: "usb"
            :keyword ptable_type: partition table type or None when the disk
                                  has no partition table
            :type ptable_type: :class:`PartitionTableType` or NoneType
            :keyword align_grain: partition alignment (1 MiB by default)
            :type align_grain: :class:`~.size.Size`
            :keyword bool require_end_alignment: whether partitions must also
                                                 end on a grain boundary
            :keyword int sector_size: the logical sector size in bytes
            :keyword str label_error: why the partition table could not be
                                      read, if it could not
        """
        self.name = name
        self.size = Size(size)
        self.path = path or "/dev/%s" % name
        self.transport = transport
        self.ptable_type = ptable_type
        self.align_grain = Size(align_grain) if align_grain is not None else DEFAULT_ALIGN_GRAIN
        self.require_end_alignment = require_end_alignment
        self.sector_size = sector_size
        self.label_error = label_error

    def __repr__(self):
        return "<Disk %s size=%s transport=%s ptable=%s>" % (self.name, self.size, self.transport,
                                                            self.ptable_type)

    def __str__(self):
        return self.name

    @property
    def usb(self):
        return self.transport == "usb"

    @property
    def usable_start(self):
        """ Offset of the first byte a partition can use. """
        return self.align_grain

    @property
    def usable_end(self):
        """ Offset right after the last byte a partition can use. """
        if self.ptable_type == PartitionTableType.GPT:
            return self.size - Size(GPT_END_RESERVED_SECTORS * self.sector_size)
        return self.size


class Partition(object):

    """ A partition on a :class:`Disk`. """

    def __init__(self, name, disk, start, size, id=PartitionId.LINUX,  # pylint: disable=redefined-builtin
                 type=PartitionType.PRIMARY, resize_min=None, label=None):  # pylint: disable=redefined-builtin
        """
            :param str name: the device name, eg: "sda1"
            :param str disk: the name of the disk holding the partition
            :param start: the offset of the partition on its disk
            :type start: :class:`~.size.Size`
            :param size: the size of the partition
            :type size: :class:`~.size.Size`
            :keyword id: the partition type tag
            :type id: :class:`~.partition_id.PartitionId`
            :keyword type: primary, extended or logical
            :type type: :class:`PartitionType`
            :keyword resize_min: the smallest size the partition (and its
                                 filesystem) can be shrunk to, None if it
                                 cannot be resized
            :type resize_min: :class:`~.size.Size` or NoneType
            :keyword str label: filesystem label, informational only
        """
        self.name = name
        self.disk = disk
        self.start = Size(start)
        self.size = Size(size)
        self.id = id
        self.type = type
        self.resize_min = Size(resize_min) if resize_min is not None else None
        self.label = label

    def __repr__(self):
        return "<Partition %s start=%s size=%s id=%s type=%s>" % (self.name, self.start, self.size,
                                                                   self.id.name, self.type.value)

    def __str__(self):
        return self.name

    @property
    def path(self):
        return "/dev/%s" % self.name

    @property
    def end(self):
        """ Offset right after the last byte of the partition. """
        return self.start + self.size

    @property
    def number(self):
        m = re.search(r'(\d+)$', self.name)
        return int(m.group(1)) if m else None

    @property
    def is_extended(self):
        return self.type == PartitionType.EXTENDED

    @property
    def is_logical(self):
        return self.type == PartitionType.LOGICAL

    @property
    def resizable(self):
        return self.resize_min is not None and self.resize_min < self.size


class PartitionTable(object):

    """ Snapshot of the partition table of a disk.

        This is the legality oracle queried when deciding which kind of
        partitions can still be created on a disk. It does not follow
        later changes to the devicegraph it was taken from.
    """

    def __init__(self, disk, partitions):
        self.disk_name = disk.name
        self.type = disk.ptable_type
        self.align_grain = disk.align_grain
        self.require_end_alignment = disk.require_end_alignment
        self.partitions = list(partitions)

    def __repr__(self):
        return ("<PartitionTable %s on %s primary=%d/%d logical=%d/%d extended=%s>" %
                (self.type.value, self.disk_name, self.num_primary, self.max_primary,
                 self.num_logical, self.max_logical, self.has_extended))

    @property
    def extended_possible(self):
        return self.type == PartitionTableType.MSDOS

    @property
    def max_primary(self):
        if self.type == PartitionTableType.MSDOS:
            return MSDOS_MAX_PRIMARY
        return GPT_MAX_PRIMARY

    @property
    def max_logical(self):
        return MSDOS_MAX_LOGICAL if self.extended_possible else 0

    @property
    def num_primary(self):
        """ Number of primary partitions, the extended one not included. """
        return len([p for p in self.partitions if p.type == PartitionType.PRIMARY])

    @property
    def num_logical(self):
        return len([p for p in self.partitions if p.is_logical])

    @property
    def extended(self):
        return next((p for p in self.partitions if p.is_extended), None)

    @property
    def has_extended(self):
        return self.extended is not None

    @property
    def free_primary_slots(self):
        used = self.num_primary + (1 if self.has_extended else 0)
        return max(self.max_primary - used, 0)


class FreeRegion(object):

    """ A contiguous unpartitioned area of a disk.

        Regions are values: equality and hashing only consider the disk,
        the start offset, the size and whether the region is growing.
    """

    def __init__(self, disk_name, start, size, partition_type=None, ptable=None,
                 growing=False, reused_partition=None):
        """
            :param str disk_name: the disk holding the region
            :param start: offset of the region on the disk
            :type start: :class:`~.size.Size`
            :param size: the size of the region
            :type size: :class:`~.size.Size`
            :keyword partition_type: the only kind of partition that can be
                                     created in the region, if restricted
            :type partition_type: :class:`PartitionType` or NoneType
            :keyword ptable: the partition table of the disk
            :type ptable: :class:`PartitionTable`
            :keyword bool growing: the region will grow as a result of
                                   shrinking the partition in front of it
            :keyword str reused_partition: name of an existing partition the
                                           region stands for
        """
        self.disk_name = disk_name
        self.start = Size(start)
        self.size = Size(size)
        self.partition_type = partition_type
        self.ptable = ptable
        self.growing = growing
        self.reused_partition = reused_partition

    def _key(self):
        return (self.disk_name, self.start, self.size, self.growing)

    def __eq__(self, other):
        return isinstance(other, FreeRegion) and self._key() == other._key()

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash(self._key())

    def __repr__(self):
        return "<FreeRegion %s start=%s size=%s type=%s growing=%s>" % (
            self.disk_name, self.start, self.size,
            self.partition_type.value if self.partition_type else None, self.growing)

    def __str__(self):
        growing = " (growing)" if self.growing else ""
        return "%s[%s, %s]%s" % (self.disk_name, self.start.get_bytes(), self.size.get_bytes(), growing)

    @property
    def end(self):
        return self.start + self.size

    @property
    def align_grain(self):
        return self.ptable.align_grain if self.ptable else DEFAULT_ALIGN_GRAIN

    @property
    def require_end_alignment(self):
        return self.ptable.require_end_alignment if self.ptable else False

    def as_growing(self, size=None):
        """ Return a growing copy of this region.

            :keyword size: size of the copy, defaults to the current size
            :type size: :class:`~.size.Size`
        """
        return FreeRegion(self.disk_name, self.start, self.size if size is None else size,
                          partition_type=self.partition_type, ptable=self.ptable,
                          growing=True, reused_partition=self.reused_partition)


def _partition_name(disk_name, number):
    if disk_name[-1].isdigit():
        return "%sp%d" % (disk_name, number)
    return "%s%d" % (disk_name, number)


class Devicegraph(object):

    """ A set of disks and the partitions on them.

        Devicegraphs are modified in place by :meth:`delete_partition`,
        :meth:`resize_partition` and :meth:`add_partition`. Code exploring
        alternatives works on a :meth:`copy`.
    """

    def __init__(self, disks=None, partitions=None):
        """
            :keyword disks: the disks
            :type disks: list of :class:`Disk`
            :keyword partitions: the partitions on those disks
            :type partitions: list of :class:`Partition`
        """
        self._disks = OrderedDict()
        self._partitions = OrderedDict()
        for disk in disks or []:
            self.add_disk(disk)
        for part in partitions or []:
            self._add_partition(part)

    def __repr__(self):
        return "<Devicegraph disks=%s partitions=%s>" % (list(self._disks.keys()),
                                                         list(self._partitions.keys()))

    def copy(self):
        return copy.deepcopy(self)

    #
    # lookups
    #
    @property
    def disks(self):
        return list(self._disks.values())

    @property
    def all_partitions(self):
        return list(self._partitions.values())

    def add_disk(self, disk):
        if disk.name in self._disks:
            raise DeviceTreeError("disk %s is already in the devicegraph" % disk.name)
        self._disks[disk.name] = disk

    def get_disk(self, name):
        """ Return the disk with the given name.

            :raises: :class:`~.errors.DeviceNotFoundError`
        """
        try:
            return self._disks[str(name)]
        except KeyError:
            raise DeviceNotFoundError("no disk named %s" % name)

    def get_partition(self, name):
        """ Return the partition with the given name.

            :raises: :class:`~.errors.DeviceNotFoundError`
        """
        try:
            return self._partitions[str(name)]
        except KeyError:
            raise DeviceNotFoundError("no partition named %s" % name)

    def find_partition(self, name):
        """ Like :meth:`get_partition` but returns None if there is no match. """
        return self._partitions.get(str(name))

    def partitions(self, disk):
        """ Return the partitions on a disk, sorted by start offset.

            :param disk: the disk or its name
            :raises: :class:`~.errors.DiskLabelScanError` if the partition
                     table of the disk cannot be read
        """
        disk = self.get_disk(disk)
        if disk.label_error:
            raise DiskLabelScanError(disk.label_error, dev_name=disk.name)

        parts = [p for p in self._partitions.values() if p.disk == disk.name]
        return sorted(parts, key=lambda p: p.start)

    def partition_table(self, disk):
        """ Return the partition table oracle of a disk.

            :param disk: the disk or its name
            :returns: the partition table or None if the disk has none
            :rtype: :class:`PartitionTable` or NoneType
        """
        disk = self.get_disk(disk)
        if disk.ptable_type is None:
            return None
        return PartitionTable(disk, self.partitions(disk))

    #
    # free space
    #
    def free_regions(self, disk):
        """ Return the free regions on a disk.

            :param disk: the disk or its name
            :rtype: list of :class:`FreeRegion`

            Regions are aligned to the grain of the disk and regions smaller
            than one grain are left out. Regions inside an extended partition
            already leave room for the EBR of their first logical partition.
        """
        disk = self.get_disk(disk)
        ptable = self.partition_table(disk)
        if ptable is None:
            return []

        grain = disk.align_grain
        top = [p for p in ptable.partitions if not p.is_logical]
        outside_type = None
        if not ptable.extended_possible or ptable.has_extended:
            outside_type = PartitionType.PRIMARY

        regions = []
        cursor = disk.usable_start
        for part in top + [None]:
            gap_end = part.start if part is not None else disk.usable_end
            start = cursor.ceil(grain)
            if gap_end > start and gap_end - start >= grain:
                regions.append(FreeRegion(disk.name, start, gap_end - start,
                                          partition_type=outside_type, ptable=ptable))
            if part is not None:
                cursor = max(cursor, part.end)

        extended = ptable.extended
        if extended is not None:
            regions.extend(self._logical_free_regions(disk, ptable, extended))

        return sorted(regions, key=lambda r: r.start)

    def _logical_free_regions(self, disk, ptable, extended):
        grain = disk.align_grain
        logicals = [p for p in ptable.partitions if p.is_logical]

        regions = []
        cursor = extended.start
        for part in logicals + [None]:
            gap_end = part.start - grain if part is not None else extended.end
            start = cursor.ceil(grain) + grain
            if gap_end > start and gap_end - start >= grain:
                regions.append(FreeRegion(disk.name, start, gap_end - start,
                                          partition_type=PartitionType.LOGICAL, ptable=ptable))
            if part is not None:
                cursor = max(cursor, part.end)

        return regions

    #
    # mutations
    #
    def _add_partition(self, part):
        self.get_disk(part.disk)
        if part.name in self._partitions:
            raise DeviceTreeError("partition %s is already in the devicegraph" % part.name)
        self._partitions[part.name] = part

    def _next_name(self, disk, part_type):
        ptable = self.partition_table(disk)
        numbers = set(p.number for p in ptable.partitions)
        if part_type == PartitionType.LOGICAL:
            candidates = range(FIRST_LOGICAL_NUMBER, FIRST_LOGICAL_NUMBER + ptable.max_logical)
        else:
            candidates = range(1, ptable.max_primary + 1)

        for number in candidates:
            if number not in numbers:
                return _partition_name(disk.name, number)

        raise PartitioningError("no free %s partition slot on %s" % (part_type.value, disk.name))

    def add_partition(self, disk, start, size, part_type=PartitionType.PRIMARY,
                      part_id=PartitionId.LINUX, name=None):
        """ Create a new partition.

            :param disk: the disk or its name
            :param start: the offset of the new partition
            :type start: :class:`~.size.Size`
            :param size: the size of the new partition
            :type size: :class:`~.size.Size`
            :keyword part_type: primary, extended or logical
            :type part_type: :class:`PartitionType`
            :keyword part_id: the partition type tag
            :type part_id: :class:`~.partition_id.PartitionId`
            :keyword str name: the device name, the next free one by default
            :returns: the new partition
            :rtype: :class:`Partition`
            :raises: :class:`~.errors.PartitioningError` if the partition
                     does not fit or the partition table has no free slot
        """
        disk = self.get_disk(disk)
        log_method_call(self, disk.name, start=start, size=size, part_type=part_type)
        ptable = self.partition_table(disk)
        if ptable is None:
            raise PartitioningError("disk %s has no partition table" % disk.name)

        start = Size(start)
        size = Size(size)
        if size <= Size(0) or size.is_unlimited():
            raise PartitioningError("invalid partition size %s" % size)
        end = start + size

        if part_type == PartitionType.LOGICAL:
            extended = ptable.extended
            if extended is None:
                raise PartitioningError("no extended partition on %s" % disk.name)
            if ptable.num_logical >= ptable.max_logical:
                raise PartitioningError("no free logical partition slot on %s" % disk.name)
            # the EBR of the new partition lives in the grain in front of it
            if start - disk.align_grain < extended.start or end > extended.end:
                raise PartitioningError("logical partition outside the extended partition")
            siblings = [p for p in ptable.partitions if p.is_logical]
            occupied = [(p.start - disk.align_grain, p.end) for p in siblings]
            new_area = (start - disk.align_grain, end)
        else:
            if part_type == PartitionType.EXTENDED:
                if not ptable.extended_possible:
                    raise PartitioningError("%s partition tables do not support extended partitions" %
                                            ptable.type.value)
                if ptable.has_extended:
                    raise PartitioningError("there is already an extended partition on %s" % disk.name)
            if ptable.free_primary_slots == 0:
                raise PartitioningError("no free primary partition slot on %s" % disk.name)
            if start < disk.usable_start or end > disk.usable_end:
                raise PartitioningError("partition outside the usable area of %s" % disk.name)
            occupied = [(p.start, p.end) for p in ptable.partitions if not p.is_logical]
            new_area = (start, end)

        for (o_start, o_end) in occupied:
            if new_area[0] < o_end and o_start < new_area[1]:
                raise PartitioningError("new partition overlaps an existing one on %s" % disk.name)

        if name is None:
            name = self._next_name(disk, part_type)

        if part_type == PartitionType.EXTENDED:
            part_id = PartitionId.EXTENDED

        part = Partition(name, disk.name, start, size, id=part_id, type=part_type)
        self._add_partition(part)
        log.debug("added partition %r", part)
        return part

    def delete_partition(self, name):
        """ Delete a partition.

            :param str name: the name of the partition
            :returns: the names of all the deleted partitions
            :rtype: list of str

            Deleting an extended partition also deletes its logical
            partitions. Deleting the last logical partition also deletes the
            extended partition unless ``flags.keep_empty_ext_partitions``
            is set.
        """
        part = self.get_partition(name)
        log_method_call(self, part.name, disk=part.disk)
        deleted = []

        if part.is_extended:
            for logical in [p for p in self.partitions(part.disk) if p.is_logical]:
                del self._partitions[logical.name]
                deleted.append(logical.name)

        del self._partitions[part.name]
        deleted.append(part.name)

        if part.is_logical and not flags.keep_empty_ext_partitions:
            ptable = self.partition_table(part.disk)
            if ptable.extended is not None and ptable.num_logical == 0:
                log.info("removing empty extended partition %s", ptable.extended.name)
                del self._partitions[ptable.extended.name]
                deleted.append(ptable.extended.name)

        log.debug("deleted partitions: %s", deleted)
        return deleted

    def resize_partition(self, name, size):
        """ Change the size of a partition, keeping its start.

            :param str name: the name of the partition
            :param size: the new size
            :type size: :class:`~.size.Size`
            :returns: the resized partition
            :rtype: :class:`Partition`
            :raises: :class:`~.errors.DeviceResizeError`
        """
        part = self.get_partition(name)
        size = Size(size)
        log_method_call(self, part.name, size=size, current=part.size, resize_min=part.resize_min)

        if part.resize_min is None:
            raise DeviceResizeError("partition %s cannot be resized" % part.name)
        if size < part.resize_min:
            raise DeviceResizeError("%s is below the minimum size (%s) of %s" %
                                    (size, part.resize_min, part.name))

        if size > part.size:
            disk = self.get_disk(part.disk)
            ptable = self.partition_table(disk)
            limit = ptable.extended.end if part.is_logical else disk.usable_end
            for other in ptable.partitions:
                if other.start < part.end or other.is_logical != part.is_logical:
                    continue
                if other.is_logical:
                    limit = min(limit, other.start - disk.align_grain)
                else:
                    limit = min(limit, other.start)
            if part.start + size > limit:
                raise DeviceResizeError("not enough room to grow %s to %s" % (part.name, size))

        part.size = size
        return part
