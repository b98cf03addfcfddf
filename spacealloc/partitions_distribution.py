# partitions_distribution.py
# Mapping of planned partitions onto free regions.
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

from collections import OrderedDict

from .assigned_space import AssignedSpace
from .devicegraph import PartitionType
from .errors import NoDiskSpaceError, NoMorePartitionSlotError
from .size import Size
from .util import compare

import logging
log = logging.getLogger("spacealloc")


def partitions_in_new_extended(num_partitions, ptable):
    """ Number of logical partitions needed to create num_partitions.

        :param int num_partitions: how many partitions will be created
        :param ptable: the partition table, without an extended partition
        :type ptable: :class:`~.devicegraph.PartitionTable`
        :returns: 0 if the free primary slots are enough, otherwise the
                  number of logical partitions, taking into account that
                  the extended partition uses one of the primary slots
        :rtype: int
    """
    free_primary_slots = ptable.max_primary - ptable.num_primary
    if free_primary_slots >= num_partitions:
        return 0
    return num_partitions - free_primary_slots + 1


def _num_partitions(spaces):
    return sum(len(s.partitions) for s in spaces)


def _num_required_logical(spaces):
    return sum(len([p for p in s.partitions if p.required_logical]) for s in spaces)


class PartitionsDistribution(object):

    """ A way of placing every planned partition in a free region.

        Building a distribution checks it: the constructor raises
        :class:`~.errors.NoDiskSpaceError` if a region cannot hold its
        partitions and :class:`~.errors.NoMorePartitionSlotError` if the
        partition tables do not have enough slots. It also decides how
        many partitions of every region will be logical.
    """

    def __init__(self, partitions_by_region):
        """
            :param partitions_by_region: planned partitions for every region,
                                         an empty list for unused regions
            :type partitions_by_region: dict of
                                        :class:`~.devicegraph.FreeRegion` to
                                        list of
                                        :class:`~.planned.PlannedPartition`
        """
        self.spaces = tuple(self._assigned_space(region, parts)
                            for (region, parts) in partitions_by_region.items() if parts)
        self.unassigned_spaces = tuple(region for (region, parts) in partitions_by_region.items()
                                       if not parts)

        for spaces in self._spaces_by_disk().values():
            self._set_num_logical_for(spaces, spaces[0].ptable)

    def __repr__(self):
        return "<PartitionsDistribution spaces=%s unassigned=%s>" % (list(self.spaces),
                                                                     list(self.unassigned_spaces))

    #
    # construction helpers
    #
    def _assigned_space(self, region, partitions):
        space = AssignedSpace(region, partitions)
        if not space.is_valid():
            log.debug("invalid assigned space %r", space)
            raise NoDiskSpaceError("partitions cannot be allocated in %s" % region)
        return space

    def _spaces_by_disk(self):
        result = OrderedDict()
        for space in self.spaces:
            result.setdefault(space.disk_name, []).append(space)
        return result

    def _set_num_logical_for(self, spaces, ptable):
        if ptable is None:
            for space in spaces:
                self._set_num_logical(space, 0)
            return

        if spaces[0].partition_type is None:
            self._calculate_num_logical_for(spaces, ptable)
            return

        if self._too_many_primary(spaces, ptable):
            raise NoMorePartitionSlotError("too many primary partitions needed on %s" % ptable.disk_name)

        logical = [s for s in spaces if s.partition_type == PartitionType.LOGICAL]
        if ptable.num_logical + _num_partitions(logical) > ptable.max_logical:
            raise NoMorePartitionSlotError("too many logical partitions needed on %s" % ptable.disk_name)

        for space in spaces:
            primary = space.partition_type == PartitionType.PRIMARY
            self._set_num_logical(space, 0 if primary else len(space.partitions))

    def _set_num_logical(self, space, num):
        space.num_logical = num
        if not space.is_valid():
            log.debug("invalid assigned space %r after adjusting num_logical", space)
            raise NoDiskSpaceError("partitions cannot be allocated in %s" % space.region)

    def _calculate_num_logical_for(self, spaces, ptable):
        if ptable.num_primary + len(spaces) > ptable.max_primary:
            log.debug("too sparse: %d + %d > %d", ptable.num_primary, len(spaces), ptable.max_primary)
            raise NoMorePartitionSlotError("too sparse distribution on %s" % ptable.disk_name)

        num_logical = max(partitions_in_new_extended(_num_partitions(spaces), ptable),
                          _num_required_logical(spaces))
        if num_logical == 0:
            log.debug("no need of logical partitions on %s", ptable.disk_name)
            for space in spaces:
                self._set_num_logical(space, 0)
            return

        self._calculate_num_logical_with_new_extended(spaces, ptable, num_logical)

    def _calculate_num_logical_with_new_extended(self, spaces, ptable, num_logical):
        if num_logical > ptable.max_logical:
            raise NoMorePartitionSlotError("too many logical partitions needed on %s" % ptable.disk_name)

        if not any(len(s.partitions) >= num_logical for s in spaces):
            log.debug("no region can hold %d logical partitions", num_logical)
            raise NoMorePartitionSlotError("no region can host %d logical partitions on %s" %
                                           (num_logical, ptable.disk_name))

        extended_space = self._extended_space(spaces, num_logical)
        if extended_space is None:
            raise NoDiskSpaceError("no suitable space for the extended partition on %s" % ptable.disk_name)

        primary_spaces = [s for s in spaces if s is not extended_space]
        if self._too_many_primary_with_extended(primary_spaces, ptable):
            raise NoMorePartitionSlotError("too many primary partitions needed on %s" % ptable.disk_name)

        self._set_num_logical(extended_space, num_logical)
        for space in primary_spaces:
            self._set_num_logical(space, 0)

    def _too_many_primary_with_extended(self, primary_spaces, ptable):
        num_primary = _num_partitions(primary_spaces) + ptable.num_primary + 1
        return num_primary > ptable.max_primary

    def _too_many_primary(self, spaces, ptable):
        primary_spaces = [s for s in spaces if s.partition_type == PartitionType.PRIMARY]
        if not ptable.extended_possible:
            return ptable.num_primary + _num_partitions(primary_spaces) > ptable.max_primary
        elif ptable.has_extended:
            return self._too_many_primary_with_extended(primary_spaces, ptable)
        return False

    def _extended_space(self, spaces, num_logical):
        """ The region that will host the new extended partition.

            Among the regions with room for the EBRs, the one with most
            partitions wins, the one starting later on ties.
        """
        spaces = [s for s in spaces if self._room_for_logical(s, num_logical)]
        if not spaces:
            return None
        return max(spaces, key=lambda s: (len(s.partitions), s.region.start))

    def _room_for_logical(self, space, num):
        if num > len(space.partitions):
            return False
        return space.extra_size >= space.overhead_of_logical * num

    #
    # queries
    #
    def space_at(self, region):
        """ The assigned space for a region, None if the region is unused. """
        return next((s for s in self.spaces if s.region == region), None)

    def add_partitions(self, partitions_by_region):
        """ Return a new distribution with some more planned partitions.

            :param partitions_by_region: a planned partition for some regions
            :type partitions_by_region: dict of
                                        :class:`~.devicegraph.FreeRegion` to
                                        :class:`~.planned.PlannedPartition`
            :rtype: :class:`PartitionsDistribution`
        """
        partitions = OrderedDict((s.region, list(s.partitions)) for s in self.spaces)
        for region in self.unassigned_spaces:
            partitions[region] = []
        for (region, part) in partitions_by_region.items():
            partitions.setdefault(region, []).append(part)
        return PartitionsDistribution(partitions)

    @property
    def regions(self):
        return [s.region for s in self.spaces] + list(self.unassigned_spaces)

    @property
    def gaps_total_size(self):
        """ Space that would end up in no partition. """
        return Size.sum([s.unused for s in self.spaces] + [r.size for r in self.unassigned_spaces])

    @property
    def gaps_count(self):
        return len([s for s in self.spaces if s.unused]) + len(self.unassigned_spaces)

    @property
    def spaces_total_size(self):
        return Size.sum(s.disk_size for s in self.spaces)

    @property
    def spaces_count(self):
        return len(self.spaces)

    @property
    def partitions_count(self):
        return _num_partitions(self.spaces)

    @property
    def comparable_string(self):
        """ String used to break ties in a stable way. """
        strings = []
        for space in self.spaces:
            parts = "".join(sorted(str(p) for p in space.partitions))
            strings.append("<region=%s, partitions=<%s>>" % (space.region, parts))
        return "".join(sorted(strings))

    def better_than(self, other):
        """ Compare with another distribution.

            :returns: a negative number if this distribution is better, a
                      positive one if it is worse, zero if they are alike
            :rtype: int

            Less wasted space wins, then fewer gaps, then fewer regions
            used, then bigger regions used.
        """
        criteria = (("gaps_total_size", False),
                    ("gaps_count", False),
                    ("spaces_count", False),
                    ("spaces_total_size", True))
        for (attr, bigger) in criteria:
            ret = compare(getattr(self, attr), getattr(other, attr))
            if bigger:
                ret = -ret
            if ret:
                return ret

        return compare(self.comparable_string, other.comparable_string)
