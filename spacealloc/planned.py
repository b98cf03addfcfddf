# planned.py
# Partitions requested by a storage proposal.
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

from decimal import Decimal

from .devicegraph import PartitionType
from .size import Size, UNLIMITED
from .util import ObjectID

import logging
log = logging.getLogger("spacealloc")

STRATEGY_MIN = "min"
STRATEGY_DESIRED = "desired"

_TO_STRING_ATTRS = ("mount_point", "min_size", "max_size", "desired_size", "disk", "max_start_offset")


class PlannedPartition(ObjectID):

    """ A partition the proposal wants to have.

        The sizes describe what is acceptable for the partition: it must get
        at least :attr:`min_size`, it should not get more than
        :attr:`max_size` and ideally it would get :attr:`desired_size`. Any
        space left over once every partition got its minimum is shared among
        partitions in proportion to their :attr:`weight`. The size finally
        granted is stored in :attr:`size`.
    """

    def __init__(self, mount_point=None, filesystem_type=None, min_size=0, max_size=UNLIMITED,
                 desired_size=UNLIMITED, weight=0, disk=None, max_start_offset=None, reuse=None,
                 primary=None, partition_id=None, bootable=False, planned_id=None):
        """
            :keyword str mount_point: where the partition will be mounted
            :keyword str filesystem_type: the filesystem to create on it
            :keyword min_size: the smallest acceptable size
            :keyword max_size: the biggest useful size, may be unlimited
            :keyword desired_size: the preferred size, may be unlimited
            :keyword weight: share of the extra space (non-negative)
            :type weight: int, float or Decimal
            :keyword str disk: name of the only disk the partition may live on
            :keyword max_start_offset: the partition must start before this
                                       offset of its disk
            :type max_start_offset: :class:`~.size.Size` or NoneType
            :keyword str reuse: name of an existing partition to reuse
            :keyword primary: whether the partition must be primary or
                              logical, None if any of them will do
            :type primary: :class:`~.devicegraph.PartitionType` or NoneType
            :keyword partition_id: the partition type tag to use
            :type partition_id: :class:`~.partition_id.PartitionId`
            :keyword bool bootable: whether to set the boot flag
            :keyword str planned_id: stable identifier, used to sort
                                     partitions deterministically
            :raises ValueError: on inconsistent sizes or weight
        """
        self.mount_point = mount_point
        self.filesystem_type = filesystem_type
        self._min_size = Size(min_size)
        self.max_size = Size(max_size)
        self.desired_size = Size(desired_size)
        self.weight = weight
        self.disk = disk
        self.max_start_offset = Size(max_start_offset) if max_start_offset is not None else None
        self.reuse = reuse
        self.primary = primary
        self.partition_id = partition_id
        self.bootable = bootable
        self.planned_id = planned_id if planned_id is not None else "planned%d" % self.id

        # written by the space distribution
        self.size = Size(0)

        self._check()

    def _check(self):
        if self.weight is None or Decimal(str(self.weight)) < 0:
            raise ValueError("weight must be a non-negative number, not %s" % self.weight)

        if self._min_size < Size(0):
            raise ValueError("min_size cannot be negative")

        if self.primary not in (None, PartitionType.PRIMARY, PartitionType.LOGICAL):
            raise ValueError("primary must be PartitionType.PRIMARY, PartitionType.LOGICAL or None")

        if self._min_size > self.max_size:
            raise ValueError("min_size (%s) is bigger than max_size (%s)" % (self._min_size, self.max_size))

        if not self.desired_size.is_unlimited():
            if self.desired_size < self._min_size or self.desired_size > self.max_size:
                raise ValueError("desired_size (%s) is out of [%s, %s]" %
                                 (self.desired_size, self._min_size, self.max_size))

    def __repr__(self):
        return ("<PlannedPartition %s mount_point=%s min=%r max=%r desired=%r weight=%s "
                "disk=%s primary=%s size=%r>" %
                (self.planned_id, self.mount_point, self.min_size, self.max_size, self.desired_size,
                 self.weight, self.disk,
                 self.primary.value if self.primary else None, self.size))

    def __str__(self):
        attrs = ["%s=%s" % (attr, getattr(self, attr)) for attr in _TO_STRING_ATTRS]
        return "<PlannedPartition %s %s>" % (self.planned_id, ", ".join(attrs))

    @property
    def min_size(self):
        """ The smallest acceptable size, zero when reusing a partition. """
        if self.reuse:
            return Size(0)
        return self._min_size

    @min_size.setter
    def min_size(self, value):
        self._min_size = Size(value)

    min = min_size

    @property
    def max(self):
        return self.max_size

    @property
    def desired(self):
        return self.desired_size

    @property
    def required_primary(self):
        return self.primary == PartitionType.PRIMARY

    @property
    def required_logical(self):
        return self.primary == PartitionType.LOGICAL

    def min_valid_size(self, strategy=STRATEGY_MIN):
        """ The smallest size that satisfies a sizing strategy.

            :keyword str strategy: "min" or "desired"
            :rtype: :class:`~.size.Size`

            An unlimited desired size falls back to the minimum.
        """
        if strategy == STRATEGY_MIN:
            size = self.min_size
        elif strategy == STRATEGY_DESIRED:
            size = self.desired_size
        else:
            raise ValueError("unknown sizing strategy %s" % strategy)

        if size.is_unlimited():
            size = self.min_size
        return size
