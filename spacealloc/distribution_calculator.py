# distribution_calculator.py
# Search for the best way of placing planned partitions in free regions.
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

import itertools
from collections import OrderedDict
from functools import cmp_to_key

from .devicegraph import FreeRegion
from .errors import NoDiskSpaceError, ProposalError
from .flags import flags
from .partitions_distribution import PartitionsDistribution
from .planned import STRATEGY_MIN
from .result import Result
from .size import Size
from .storage_log import log_method_call, log_method_return
from .util import compare

import logging
log = logging.getLogger("spacealloc")


def _distribution_compare(dist1, dist2):
    return dist1.better_than(dist2)


class DistributionCalculator(object):

    """ Finds the best :class:`~.partitions_distribution.PartitionsDistribution`.

        Every combination of candidate regions for the planned partitions is
        tried. The number of combinations grows exponentially with the
        number of partitions, so only the first
        ``flags.max_distribution_candidates`` are evaluated.
    """

    def __init__(self, partitions, strategy=STRATEGY_MIN, max_candidates=None):
        """
            :param partitions: the planned partitions
            :type partitions: list of :class:`~.planned.PlannedPartition`
            :keyword str strategy: sizing strategy ("min" or "desired") used
                                   to decide whether a region is big enough
            :keyword int max_candidates: how many combinations to evaluate at
                                         most, defaults to the flags value
        """
        self.partitions = list(partitions)
        self.strategy = strategy
        if max_candidates is None:
            max_candidates = flags.max_distribution_candidates
        self.max_candidates = max_candidates

    def best_distribution(self, regions):
        """ The best distribution of the planned partitions.

            :param regions: the free regions to use
            :type regions: list of :class:`~.devicegraph.FreeRegion`
            :returns: a result holding the distribution, or the reason why
                      there is none (:class:`~.errors.NoDiskSpaceError` or
                      :class:`~.errors.NoMorePartitionSlotError`)
            :rtype: :class:`~.result.Result`
        """
        log_method_call(self, partitions=[p.planned_id for p in self.partitions], regions=regions)
        try:
            self._check_possible(regions)
            dist_hashes = self._distribution_hashes(regions)
        except NoDiskSpaceError as e:
            log.info("no distribution possible: %s", e)
            return Result(error=e)

        (candidates, error) = self._distributions(dist_hashes)
        if not candidates:
            if error is None:
                error = NoDiskSpaceError("no valid distribution of the planned partitions")
            log.info("no valid distribution: %s", error)
            return Result(error=error)

        log.info("comparing %d distributions", len(candidates))
        best = min(candidates, key=cmp_to_key(_distribution_compare))
        log_method_return(self, best)
        return Result(value=best)

    def resizing_size(self, partition, regions):
        """ How much a partition must shrink for a distribution to exist.

            :param partition: the partition to shrink
            :type partition: :class:`~.devicegraph.Partition`
            :param regions: the current free regions
            :type regions: list of :class:`~.devicegraph.FreeRegion`
            :returns: the size to take from the partition
            :rtype: :class:`~.size.Size`

            The space taken from the end of the partition makes the free
            region right after it grow (or appear). The smallest amount that
            allows a valid distribution is returned, the whole partition if
            no amount would do.
        """
        log_method_call(self, partition.name, regions=regions)
        disk_regions = [r for r in regions if r.disk_name == partition.disk]
        disk_partitions = [p for p in self.partitions if p.disk in (None, partition.disk)]
        disk_regions = self._add_or_mark_growing_region(disk_regions, partition)
        grain = disk_regions[-1].align_grain

        calculator = DistributionCalculator(disk_partitions, strategy=self.strategy,
                                            max_candidates=self.max_candidates)
        try:
            dist_hashes = calculator._distribution_hashes(disk_regions)
        except NoDiskSpaceError:
            log_method_return(self, partition.size)
            return partition.size

        missing = self._missing_size_in_growing_region(calculator, dist_hashes, grain)
        if missing is None:
            missing = partition.size

        log_method_return(self, missing)
        return missing

    #
    # helpers
    #
    def _check_possible(self, regions):
        needed = Size.sum(p.min_size for p in self.partitions)
        available = Size.sum(r.size for r in regions if not r.growing)
        if not any(r.growing for r in regions) and needed > available:
            raise NoDiskSpaceError("needed %s but only %s available" % (needed, available))

        by_disk = OrderedDict()
        for part in self.partitions:
            if part.disk:
                by_disk.setdefault(part.disk, []).append(part)

        for (disk, parts) in by_disk.items():
            disk_regions = [r for r in regions if r.disk_name == disk]
            if any(r.growing for r in disk_regions):
                continue
            needed = Size.sum(p.min_size for p in parts)
            available = Size.sum(r.size for r in disk_regions)
            if needed > available:
                raise NoDiskSpaceError("needed %s on %s but only %s available" % (needed, disk, available))

    def _suitable_region(self, region, partition):
        if partition.disk and partition.disk != region.disk_name:
            return False
        if not region.growing and region.size < partition.min_valid_size(self.strategy):
            return False
        if partition.max_start_offset is not None and region.start > partition.max_start_offset:
            return False
        return True

    def _candidate_regions(self, regions):
        result = OrderedDict()
        for part in self.partitions:
            candidates = [r for r in regions if self._suitable_region(r, part)]
            if not candidates:
                log.error("no suitable free region for %s", part)
                raise NoDiskSpaceError("no suitable free region for %s" % part.planned_id)
            result[part] = candidates
        return result

    def _distribution_hashes(self, regions):
        """ Every combination of regions, inverted into region -> partitions.

            Regions not used by a combination are present with no
            partitions.
        """
        candidates = self._candidate_regions(regions)
        parts = list(candidates.keys())
        combinations = itertools.product(*(candidates[p] for p in parts))

        result = []
        for combination in itertools.islice(combinations, self.max_candidates + 1):
            if len(result) == self.max_candidates:
                log.warning("too many possible distributions, only %d evaluated", self.max_candidates)
                break

            dist = OrderedDict((r, []) for r in regions)
            for (part, region) in zip(parts, combination):
                dist[region].append(part)
            result.append(dist)

        return result

    def _distributions(self, dist_hashes):
        candidates = []
        error = None
        for dist_hash in dist_hashes:
            try:
                candidates.append(PartitionsDistribution(dist_hash))
            except ProposalError as e:
                log.debug("discarding distribution: %s", e)
                if error is None:
                    error = e
        return (candidates, error)

    def _add_or_mark_growing_region(self, regions, partition):
        result = []
        for region in regions:
            if self._right_after(region, partition):
                result.append(region.as_growing())
            else:
                result.append(region)

        if not any(r.growing for r in result):
            ptable = regions[0].ptable if regions else None
            result.append(FreeRegion(partition.disk, partition.end, Size(0), ptable=ptable, growing=True))

        return result

    def _right_after(self, region, partition):
        if region.disk_name != partition.disk or region.start < partition.end:
            return False
        # the EBR of a logical partition sits in the grain in front of it
        return region.start - partition.end <= region.align_grain

    def _missing_size_in_growing_region(self, calculator, dist_hashes, grain):
        groups = OrderedDict()
        for dist_hash in dist_hashes:
            growing = next(r for r in dist_hash if r.growing)
            groups.setdefault(tuple(dist_hash[growing]), []).append(dist_hash)

        def group_compare(parts1, parts2):
            ret = compare(Size.sum((p.min_size for p in parts1), rounding=grain),
                          Size.sum((p.min_size for p in parts2), rounding=grain))
            if ret == 0:
                ret = compare("".join(p.planned_id for p in parts1),
                              "".join(p.planned_id for p in parts2))
            return ret

        for parts in sorted(groups.keys(), key=cmp_to_key(group_compare)):
            (distributions, _error) = calculator._distributions(groups[parts])
            if not distributions:
                continue

            spaces = [next((s for s in d.spaces if s.region.growing), None) for d in distributions]
            if any(s is None for s in spaces):
                return Size(0)

            missing = min(s.total_missing_size for s in spaces).ceil(grain)
            return max(missing, Size(0))

        return None
