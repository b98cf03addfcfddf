# space_maker.py
# Freeing disk space for new partitions.
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

from collections import namedtuple

from . import arch
from .disk_analyzer import DiskAnalyzer
from .distribution_calculator import DistributionCalculator
from .errors import DeviceResizeError, DiskLabelScanError, NoDiskSpaceError
from .flags import flags
from .planned import STRATEGY_MIN
from .result import Result
from .size import Size
from .storage_log import log_exception_info, log_method_call

import logging
log = logging.getLogger("spacealloc")

SpaceMakerResult = namedtuple("SpaceMakerResult",
                              ["devicegraph", "deleted_partitions", "resized_partitions", "distribution"])


class SpaceMaker(object):

    """ Makes room for new partitions by shrinking or deleting existing ones.

        The devicegraph passed to :meth:`provide_space` is never modified:
        changes are done on copies and the resulting devicegraph is returned.
    """

    def __init__(self, disk_analyzer=None, min_free_space_size=None, windows_resize=None,
                 strategy=STRATEGY_MIN):
        """
            :keyword disk_analyzer: analyzer to classify the disks with
            :type disk_analyzer: :class:`~.disk_analyzer.DiskAnalyzer`
            :keyword min_free_space_size: free regions smaller than this are
                                          not taken into account
            :type min_free_space_size: :class:`~.size.Size`
            :keyword bool windows_resize: whether shrinking a Windows
                                          partition is allowed, only on x86
                                          by default
            :keyword str strategy: sizing strategy for planned partitions
        """
        self.disk_analyzer = disk_analyzer if disk_analyzer is not None else DiskAnalyzer()
        if min_free_space_size is None:
            min_free_space_size = flags.min_free_space_size
        self.min_free_space_size = Size(min_free_space_size)
        if windows_resize is None:
            windows_resize = flags.windows_resize
        if windows_resize is None:
            windows_resize = arch.is_x86()
        self.windows_resize = windows_resize
        self.strategy = strategy

        self._last_distribution = None

    def provide_space(self, devicegraph, required_size=None, elements=None):
        """ Get a devicegraph with enough free space.

            :param devicegraph: the initial devicegraph, it is not modified
            :type devicegraph: :class:`~.devicegraph.Devicegraph`
            :keyword required_size: total free space needed, by default the
                                    sum of the minimum sizes of elements
            :type required_size: :class:`~.size.Size`
            :keyword elements: planned partitions that must fit in the free
                               space, if any
            :type elements: list of :class:`~.planned.PlannedPartition`
            :returns: a result holding a :class:`SpaceMakerResult` or a
                      :class:`~.errors.NoDiskSpaceError`
            :rtype: :class:`~.result.Result`

            First the existing free space is checked. If it is not enough,
            the only Windows partition (if there is exactly one and no Linux
            partitions) is shrunk. If that does not help, partitions are
            deleted one by one: Linux partitions first, Windows partitions
            last.
        """
        log_method_call(self, required_size=required_size, elements=elements)
        elements = list(elements or [])
        # partitions being reused are needed as they are
        elements_to_fit = [e for e in elements if not e.reuse]
        keep = set(e.reuse for e in elements if e.reuse)
        if required_size is None:
            required_size = Size.sum(e.min_size for e in elements_to_fit)
        required_size = Size(required_size)

        if self.disk_analyzer.devicegraph is not devicegraph:
            self.disk_analyzer.analyze(devicegraph)
        analysis = self.disk_analyzer.analysis

        if self._success(devicegraph, analysis, required_size, elements_to_fit):
            log.info("enough free space already available")
            return self._result(devicegraph, [], [])

        resized = self._resize_windows(devicegraph, analysis, required_size, elements_to_fit, keep)
        if resized is not None:
            return resized

        return self._delete_partitions(devicegraph, analysis, required_size, elements_to_fit, keep)

    #
    # free space checks
    #
    def free_regions(self, devicegraph, disk_names):
        """ Free regions worth using on some disks.

            Disks whose partition table cannot be read are skipped.
        """
        regions = []
        for name in disk_names:
            try:
                disk_regions = devicegraph.free_regions(name)
            except DiskLabelScanError:
                log_exception_info(log.warning, "cannot read the partition table of %s", [name])
                continue
            regions.extend(r for r in disk_regions if r.size >= self.min_free_space_size)
        return regions

    def available_size(self, devicegraph, disk_names):
        return Size.sum(r.size for r in self.free_regions(devicegraph, disk_names))

    def _success(self, devicegraph, analysis, required_size, elements):
        self._last_distribution = None
        regions = self.free_regions(devicegraph, analysis.candidate_disks)
        available = Size.sum(r.size for r in regions)
        log.debug("available free space: %s, required: %s", available, required_size)
        if available < required_size:
            return False

        if not elements:
            return True

        result = DistributionCalculator(elements, strategy=self.strategy).best_distribution(regions)
        if not result.success:
            log.info("no distribution of the planned partitions yet: %s", result.error)
            return False

        self._last_distribution = result.value
        return True

    def _result(self, devicegraph, deleted, resized):
        return Result(value=SpaceMakerResult(devicegraph, deleted, resized, self._last_distribution))

    #
    # resizing
    #
    def _resize_windows(self, devicegraph, analysis, required_size, elements, keep):
        windows = [p for p in analysis.all_windows_partitions if p.name not in keep]
        if not self.windows_resize:
            log.debug("resizing Windows partitions is disabled")
            return None
        if len(windows) != 1 or analysis.all_linux_partitions:
            return None

        graph = devicegraph.copy()
        part = graph.get_partition(windows[0].name)
        if not part.resizable:
            log.info("Windows partition %s cannot be shrunk", part.name)
            return None

        grain = graph.get_disk(part.disk).align_grain
        shrink = self._shrink_size(graph, analysis, part, required_size, elements)
        new_size = max(part.resize_min.ceil(grain), (part.size - shrink).floor(grain))
        if new_size >= part.size:
            log.info("Windows partition %s cannot be shrunk any more", part.name)
            return None

        log.info("shrinking Windows partition %s from %s to %s", part.name, part.size, new_size)
        try:
            graph.resize_partition(part.name, new_size)
        except DeviceResizeError:
            log_exception_info(log.info, "failed to shrink %s", [part.name])
            return None

        if not self._success(graph, analysis, required_size, elements):
            log.info("shrinking %s was not enough", part.name)
            return None

        return self._result(graph, [], [part.name])

    def _shrink_size(self, graph, analysis, part, required_size, elements):
        missing = required_size - self.available_size(graph, analysis.candidate_disks)
        if not elements:
            return missing

        regions = self.free_regions(graph, analysis.candidate_disks)
        calculator = DistributionCalculator(elements, strategy=self.strategy)
        return max(missing, calculator.resizing_size(part, regions))

    #
    # deleting
    #
    def _deletion_order(self, devicegraph, analysis, keep):
        """ Names of the partitions to delete, in order.

            Linux partitions go first and Windows partitions last. Within
            every group, partitions at the end of a disk go before the ones
            in front of them.
        """
        linux = set(p.name for p in analysis.all_linux_partitions)
        windows = set(p.name for p in analysis.all_windows_partitions)
        groups = ([], [], [])
        for name in analysis.candidate_disks:
            try:
                parts = devicegraph.partitions(name)
            except DiskLabelScanError:
                continue

            for part in sorted(parts, key=lambda p: p.start, reverse=True):
                if part.is_extended or part.name in keep:
                    continue
                if part.name in linux:
                    groups[0].append(part.name)
                elif part.name in windows:
                    groups[2].append(part.name)
                else:
                    groups[1].append(part.name)

        return groups[0] + groups[1] + groups[2]

    def _delete_partitions(self, devicegraph, analysis, required_size, elements, keep):
        graph = devicegraph.copy()
        deleted = []
        for name in self._deletion_order(devicegraph, analysis, keep):
            if graph.find_partition(name) is None:
                continue

            log.info("deleting partition %s", name)
            deleted.extend(graph.delete_partition(name))
            if self._success(graph, analysis, required_size, elements):
                return self._result(graph, deleted, [])

        log.error("not enough space could be made: required %s", required_size)
        return Result(error=NoDiskSpaceError("cannot make %s of free space" % required_size))
