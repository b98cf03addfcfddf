# assigned_space.py
# A free region together with the planned partitions meant to live in it.
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

from functools import cmp_to_key

from .devicegraph import PartitionType
from .growth import total_weight
from .size import Size
from .util import compare

import logging
log = logging.getLogger("spacealloc")


def overhead_of_logical(region):
    """ Space taken by the EBR in front of every logical partition. """
    return region.align_grain


def _type_rank(part):
    if part.required_primary:
        return 0
    elif part.required_logical:
        return 2
    return 1


def _offset_compare(one, other):
    """ Order by max_start_offset with partitions lacking one at the end.

        Ties keep partitions that must be primary in front and partitions
        that must be logical at the back, then the original order.
    """
    (part1, idx1) = one
    (part2, idx2) = other
    offset1 = part1.max_start_offset
    offset2 = part2.max_start_offset
    if offset1 is None and offset2 is not None:
        return 1
    elif offset2 is None and offset1 is not None:
        return -1

    ret = compare(offset1, offset2)
    if ret == 0:
        ret = compare(_type_rank(part1), _type_rank(part2))
    if ret == 0:
        ret = compare(idx1, idx2)
    return ret


class AssignedSpace(object):

    """ A free region and the planned partitions assigned to it.

        The partitions are kept in the order they will be created in the
        region: partitions with a tighter max_start_offset first. The last
        :attr:`num_logical` of them will be logical partitions.
    """

    def __init__(self, region, partitions):
        """
            :param region: the free region
            :type region: :class:`~.devicegraph.FreeRegion`
            :param partitions: planned partitions to allocate in the region
            :type partitions: list of :class:`~.planned.PlannedPartition`
        """
        self.region = region
        self.partitions = list(partitions)
        self.num_logical = 0
        self._sort_partitions()

    def __repr__(self):
        return "<AssignedSpace region=%s partitions=%s num_logical=%d>" % (
            self.region, [p.planned_id for p in self.partitions], self.num_logical)

    @property
    def disk_name(self):
        return self.region.disk_name

    @property
    def disk_size(self):
        return self.region.size

    @property
    def ptable(self):
        return self.region.ptable

    @property
    def align_grain(self):
        return self.region.align_grain

    @property
    def overhead_of_logical(self):
        return overhead_of_logical(self.region)

    @property
    def partition_type(self):
        """ The kind of partitions the region can hold, None if any. """
        ptable = self.ptable
        if ptable is None or not ptable.extended_possible:
            return PartitionType.PRIMARY
        if ptable.has_extended:
            return PartitionType.LOGICAL if self._inside_extended() else PartitionType.PRIMARY
        return None

    def _inside_extended(self):
        extended = self.ptable.extended
        if extended is None:
            return False
        return extended.start <= self.region.start < extended.end

    @property
    def total_weight(self):
        return total_weight(self.partitions)

    def _min_sum(self, rounding=None):
        return Size.sum((p.min_size for p in self.partitions), rounding=rounding)

    @property
    def usable_size(self):
        """ Size of the region left once the EBRs are taken out.

            A region inside an existing extended partition already leaves
            out the EBR of its first logical partition.
        """
        if self.num_logical == 0:
            return self.disk_size

        logical = self.num_logical
        if self.partition_type == PartitionType.LOGICAL:
            logical -= 1
        return self.disk_size - self.overhead_of_logical * logical

    @property
    def unused(self):
        """ Space no partition will take, even growing to its maximum. """
        max_sum = Size.sum(p.max_size for p in self.partitions)
        usable = self.usable_size
        if max_sum >= usable:
            return Size(0)
        return usable - max_sum

    @property
    def extra_size(self):
        return self.disk_size - self._min_sum(rounding=self.align_grain)

    @property
    def usable_extra_size(self):
        return self.usable_size - self._min_sum()

    @property
    def total_needed_size(self):
        return self._min_sum(rounding=self.align_grain) + self.overhead_of_logical * self.num_logical

    @property
    def total_missing_size(self):
        return self.total_needed_size - self.disk_size

    @property
    def require_end_alignment(self):
        return self.region.require_end_alignment

    def _wrong_usage_of_reused_partition(self):
        return self.region.reused_partition is not None and len(self.partitions) > 1

    def _partition_types_fit(self):
        logical = self.partitions[len(self.partitions) - self.num_logical:] if self.num_logical else []
        primary = self.partitions[:len(self.partitions) - self.num_logical]
        if any(p.required_primary for p in logical):
            return False
        return not any(p.required_logical for p in primary)

    def is_valid(self):
        """ Whether the partitions can be created in the region. """
        if self._wrong_usage_of_reused_partition():
            return False
        if not self._partition_types_fit():
            return False
        if self.region.growing:
            return True
        if self.usable_size >= self._min_sum(rounding=self.align_grain):
            return True
        return self.enforced_last() is not None

    def enforced_last(self):
        """ The partition that must be created last for the others to fit.

            When the rounded up minimum sizes overflow the region by less
            than one grain, the overflow can be taken from the last
            partition, provided that it does not end up below its minimum.
            Returns None if no reordering is needed or none would help.
        """
        if self.require_end_alignment:
            return None

        rounded_up = self._min_sum(rounding=self.align_grain)
        usable = self.usable_size
        if usable >= rounded_up:
            return None

        missing = rounded_up - usable
        if missing >= self.align_grain:
            return None

        for part in reversed(self.partitions):
            if part.min_size.ceil(self.align_grain) - missing >= part.min_size:
                return part

        return None

    def _sort_partitions(self):
        indexed = sorted(((p, i) for (i, p) in enumerate(self.partitions)),
                         key=cmp_to_key(_offset_compare))
        self.partitions = [p for (p, _i) in indexed]

        last = self.enforced_last()
        if last is not None:
            self.partitions.remove(last)
            self.partitions.append(last)
