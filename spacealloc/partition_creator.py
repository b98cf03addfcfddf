# partition_creator.py
# Creation of the planned partitions in a devicegraph.
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

from collections import namedtuple, OrderedDict

from .devicegraph import PartitionType
from .errors import NoDiskSpaceError, PartitioningError
from .growth import distribute_space
from .partition_id import PartitionId
from .storage_log import log_method_call

import logging
log = logging.getLogger("spacealloc")

PartitionCreationResult = namedtuple("PartitionCreationResult", ["devicegraph", "devices_map"])


def _partition_id(planned):
    if planned.partition_id is not None:
        return planned.partition_id
    if planned.mount_point == "swap" or planned.filesystem_type == "swap":
        return PartitionId.SWAP
    return PartitionId.LINUX


class PartitionCreator(object):

    """ Lays out the partitions of a distribution on a devicegraph. """

    def create_partitions(self, distribution, devicegraph):
        """ Create the partitions of a distribution.

            :param distribution: where every planned partition goes
            :type distribution: :class:`~.partitions_distribution.PartitionsDistribution`
            :param devicegraph: the devicegraph the distribution was
                                computed for, it is not modified
            :type devicegraph: :class:`~.devicegraph.Devicegraph`
            :returns: the new devicegraph and the planned partition (with
                      its final size) for every new partition name
            :rtype: :class:`PartitionCreationResult`
            :raises: :class:`~.errors.PartitioningError` if a partition
                     cannot be created
        """
        log_method_call(self, distribution=distribution)
        graph = devicegraph.copy()
        devices_map = OrderedDict()
        for space in distribution.spaces:
            for part in space.partitions:
                log.info("partition %s\tmin: %s\tmax: %s\tweight: %s",
                         part.mount_point, part.min_size, part.max_size, part.weight)

            planned = distribute_space(space.partitions, space.usable_size,
                                       align_grain=space.align_grain,
                                       end_alignment=space.require_end_alignment)
            devices_map.update(self._create_planned_partitions(graph, planned, space.region,
                                                               space.num_logical))

        return PartitionCreationResult(graph, devices_map)

    def _create_planned_partitions(self, graph, planned_partitions, initial_region, num_logical):
        devices_map = OrderedDict()
        for (idx, planned) in enumerate(planned_partitions):
            primary = len(planned_partitions) - idx > num_logical
            try:
                region = self._free_region_within(graph, initial_region)
                partition = self._create_partition(graph, planned, region, initial_region, primary)
            except (PartitioningError, NoDiskSpaceError) as e:
                raise PartitioningError("error allocating %s: %s" % (planned.planned_id, e))
            devices_map[partition.name] = planned
        return devices_map

    def _free_region_within(self, graph, initial_region):
        regions = [r for r in graph.free_regions(initial_region.disk_name)
                   if initial_region.start <= r.start < initial_region.end]
        if not regions:
            raise NoDiskSpaceError("exhausted free space in %s" % initial_region)
        return regions[0]

    def _create_partition(self, graph, planned, region, initial_region, primary):
        log.info("creating partition for %s with %s", planned.mount_point, planned.size)
        ptable = graph.partition_table(region.disk_name)
        if primary:
            part_type = PartitionType.PRIMARY
        else:
            if not ptable.has_extended:
                extended = graph.add_partition(region.disk_name, region.start,
                                               initial_region.end - region.start,
                                               part_type=PartitionType.EXTENDED)
                log.info("created extended partition %s", extended.name)
                region = self._free_region_within(graph, initial_region)
            part_type = PartitionType.LOGICAL

        size = min(planned.size, region.size)
        partition = graph.add_partition(region.disk_name, region.start, size,
                                        part_type=part_type, part_id=_partition_id(planned))
        log.info("created %r", partition)
        return partition
