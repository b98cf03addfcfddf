# __init__.py
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

__version__ = '0.1.0'

import warnings

import logging
log = logging.getLogger("spacealloc")
program_log = logging.getLogger("program")

# Tell the warnings module not to ignore DeprecationWarning, which it does by
# default.
warnings.simplefilter('module', DeprecationWarning)

# Enable logging of python warnings.
logging.captureWarnings(True)

from .devicegraph import Devicegraph, Disk, Partition, FreeRegion
from .devicegraph import PartitionTableType, PartitionType
from .disk_analyzer import DiskAnalysis, DiskAnalyzer
from .distribution_calculator import DistributionCalculator
from .errors import NoDiskSpaceError, NoMorePartitionSlotError
from .flags import flags
from .partition_creator import PartitionCreator
from .partition_id import PartitionId
from .planned import PlannedPartition, STRATEGY_DESIRED, STRATEGY_MIN
from .result import Result
from .size import Size
from .space_maker import SpaceMaker

__all__ = ["analyze", "provide_space", "best_distribution",
           "Devicegraph", "Disk", "Partition", "FreeRegion", "PartitionTableType", "PartitionType",
           "DiskAnalysis", "DiskAnalyzer", "DistributionCalculator", "PartitionCreator",
           "PartitionId", "PlannedPartition", "Result", "Size", "SpaceMaker",
           "NoDiskSpaceError", "NoMorePartitionSlotError",
           "STRATEGY_DESIRED", "STRATEGY_MIN", "flags"]


def analyze(devicegraph, mount_helper=None):
    """ Classify the disks and partitions of a devicegraph.

        :param devicegraph: the devicegraph, it is not modified
        :type devicegraph: :class:`~.devicegraph.Devicegraph`
        :keyword mount_helper: used to look inside volumes
        :type mount_helper: :class:`~.mounts.MountHelper`
        :rtype: :class:`~.disk_analyzer.DiskAnalysis`
    """
    return DiskAnalyzer(mount_helper=mount_helper).analyze(devicegraph)


def provide_space(devicegraph, required_size, elements=None, disk_analyzer=None):
    """ Make enough free space in a devicegraph.

        :param devicegraph: the devicegraph, it is not modified
        :type devicegraph: :class:`~.devicegraph.Devicegraph`
        :param required_size: how much free space is needed, None for the
                              sum of the minimum sizes of elements
        :type required_size: :class:`~.size.Size` or NoneType
        :keyword elements: planned partitions that must fit
        :type elements: list of :class:`~.planned.PlannedPartition`
        :keyword disk_analyzer: analyzer to use instead of a new one
        :type disk_analyzer: :class:`~.disk_analyzer.DiskAnalyzer`
        :returns: a result holding a :class:`~.space_maker.SpaceMakerResult`
        :rtype: :class:`~.result.Result`
    """
    maker = SpaceMaker(disk_analyzer=disk_analyzer)
    return maker.provide_space(devicegraph, required_size=required_size, elements=elements)


def best_distribution(elements, free_regions, strategy=STRATEGY_MIN):
    """ Find the best way to place planned partitions in free regions.

        :param elements: the planned partitions
        :type elements: list of :class:`~.planned.PlannedPartition`
        :param free_regions: where they can go
        :type free_regions: list of :class:`~.devicegraph.FreeRegion`
        :keyword str strategy: sizing strategy for the planned partitions
        :returns: a result holding a
                  :class:`~.partitions_distribution.PartitionsDistribution`
        :rtype: :class:`~.result.Result`
    """
    return DistributionCalculator(elements, strategy=strategy).best_distribution(free_regions)
