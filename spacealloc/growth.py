# growth.py
# Distribution of free space among planned partitions.
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
from decimal import Decimal

from .errors import NoDiskSpaceError
from .size import Size

import logging
log = logging.getLogger("spacealloc")


def total_weight(requests):
    return sum((Decimal(str(r.weight)) for r in requests), Decimal(0))


class Chunk(object):

    """ A free region from which planned partitions get their sizes. """

    def __init__(self, length, requests=None, rounding=None):
        """
            :param length: the size of the chunk
            :type length: :class:`~.size.Size`
            :keyword requests: the planned partitions to grow
            :type requests: list of :class:`~.planned.PlannedPartition`
            :keyword rounding: every share is a multiple of this
            :type rounding: :class:`~.size.Size`
        """
        self.length = Size(length)
        self.rounding = rounding or Size(1)
        self.requests = []
        for req in requests or []:
            self.add_request(req)

    def __repr__(self):
        return ("%(type)s instance --\n"
                "length = %(length)s  pool = %(pool)s  requests = %(reqs)d" %
                {"type": self.__class__.__name__, "length": self.length,
                 "pool": self.pool, "reqs": len(self.requests)})

    def add_request(self, req):
        """ Add a request to this chunk, sized to its rounded minimum. """
        req.size = req.min_size.ceil(self.rounding)
        log.debug("adding request %s (%s) to chunk", req.planned_id, req.size)
        self.requests.append(req)

    @property
    def pool(self):
        """ Space not given to any request yet. """
        return self.length - Size.sum(r.size for r in self.requests)

    def growable(self, requests=None):
        """ Requests that are still below their maximum size. """
        if requests is None:
            requests = self.requests
        return [r for r in requests if r.size < r.max_size]

    def distributable(self, amount):
        return amount >= self.rounding

    def request_growth(self, req, amount, weight, assigned):
        """ How much a request grows in one pass.

            :param req: the request
            :param amount: the space being distributed in this pass
            :param weight: the total weight of the growable requests
            :param assigned: the space already given out in this pass
            :rtype: :class:`~.size.Size`
        """
        available = amount - assigned
        share = Decimal(str(req.weight)) / weight
        growth = (amount * share).ceil(self.rounding)
        if growth > available:
            growth = available.floor(self.rounding)

        if req.size + growth > req.max_size:
            return (req.max_size - req.size).floor(self.rounding)
        return growth

    def grow_requests(self):
        """ Distribute the pool among the requests.

            :returns: the part of the pool nobody could take
            :rtype: :class:`~.size.Size`

            In every pass, requests below their maximum get a share of what
            is left in proportion to their weight, rounded up to the chunk
            rounding, without going over their maximum. Passes go on until
            the pool is smaller than the rounding, no request can grow any
            more or a pass does not hand out anything.
        """
        extra = self.pool
        candidates = self.requests
        while self.distributable(extra):
            candidates = self.growable(candidates)
            if not candidates:
                break

            weight = total_weight(candidates)
            if not weight:
                break

            log.debug("distributing %s among %d requests", extra, len(candidates))
            assigned = Size(0)
            for req in candidates:
                growth = self.request_growth(req, extra, weight, assigned)
                req.size += growth
                assigned += growth
                log.debug("adding %s to %s; now %s", growth, req.planned_id, req.size)

            extra -= assigned
            if not assigned:
                break

        if extra:
            log.debug("could not distribute %s", extra)
        return extra


def adjusted_size_after_ceil(req, space_size, align_grain):
    """ Size of the last request when the region does not end on a grain.

        The minimum sizes are rounded up to the grain, so the last request
        would go past the end of a region whose size is not a multiple of
        the grain. Return its size shrunk by the missing part of the last
        grain.
    """
    mod = space_size % align_grain
    last_slot_size = align_grain if not mod else mod
    if last_slot_size == align_grain:
        return req.size

    return req.size - (align_grain - last_slot_size)


def distribute_space(requests, space_size, rounding=None, align_grain=None, end_alignment=False):
    """ Distribute a region among planned partitions.

        :param requests: the planned partitions
        :type requests: list of :class:`~.planned.PlannedPartition`
        :param space_size: the size of the region
        :type space_size: :class:`~.size.Size`
        :keyword rounding: granularity of the sizes, defaults to align_grain
        :type rounding: :class:`~.size.Size`
        :keyword align_grain: alignment of the partitions in the region
        :type align_grain: :class:`~.size.Size`
        :keyword bool end_alignment: whether partitions must end aligned
        :returns: copies of the requests with their size set
        :rtype: list of :class:`~.planned.PlannedPartition`
        :raises: :class:`~.errors.NoDiskSpaceError` if the region cannot
                 hold the minimum sizes

        The original requests are not modified.
    """
    needed = Size.sum(r.min_size for r in requests)
    if space_size < needed:
        log.error("not enough space: needed %s, available %s", needed, space_size)
        raise NoDiskSpaceError("not enough space: needed %s, available %s" % (needed, space_size))

    rounding = rounding or align_grain or Size(1)
    new_requests = [copy.copy(r) for r in requests]
    chunk = Chunk(space_size, requests=new_requests, rounding=rounding)
    if not new_requests:
        return new_requests

    last = new_requests[-1]
    adjust_to_end = align_grain is not None and not end_alignment
    if adjust_to_end:
        adjusted = adjusted_size_after_ceil(last, space_size, align_grain)
        if adjusted >= last.min_size:
            last.size = adjusted

    unused = chunk.grow_requests()
    if adjust_to_end and unused < align_grain:
        last.size += unused

    return new_requests
