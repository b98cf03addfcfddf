# mounts.py
# Active mountpoints cache and temporary mounting of volumes.
#
# Copyright (C) 2015  Red Hat, Inc.
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

import os
import tempfile
from collections import defaultdict
from contextlib import contextmanager

from .errors import MountError
from . import util

import logging
log = logging.getLogger("spacealloc")


class MountsCache(object):

    """ Cache object for system mountpoints; checks /proc/mounts for
        up-to-date information.
    """

    def __init__(self, mounts_file="/proc/mounts"):
        self.mounts_file = mounts_file
        self.mounts_hash = 0
        self.mountpoints = defaultdict(list)

    def get_mountpoints(self, devspec):
        """ Get mountpoints for selected device

            :param devscpec: device specification, eg. "/dev/vda1"
            :type devspec: str
            :returns: list of mountpoints (path)
            :rtype: list of str or empty list
        """
        self._cache_check()
        return list(self.mountpoints[os.path.realpath(devspec)])

    def is_mountpoint(self, path):
        """ Check to see if a path is already mounted

            :param str path: Path to check
        """
        self._cache_check()
        return any(path in p for p in self.mountpoints.values())

    def _get_active_mounts(self):
        self.mountpoints = defaultdict(list)

        with open(self.mounts_file) as mounts:
            for line in mounts:
                try:
                    (devspec, mountpoint, _rest) = line.split(None, 2)
                except ValueError:
                    log.error("failed to parse %s line: %s", self.mounts_file, line)
                    continue

                if devspec.startswith("/dev"):
                    devspec = os.path.realpath(devspec)
                self.mountpoints[devspec].append(mountpoint)

    def _cache_check(self):
        """ Computes the SHA256 hash on the mounts file and updates the cache on change
        """
        sha256hash = util.sha256_file(self.mounts_file)

        if sha256hash != self.mounts_hash:
            self.mounts_hash = sha256hash
            self._get_active_mounts()


class MountHelper(object):

    """ Gives temporary read-only access to the contents of a volume. """

    def __init__(self, mount_root=None, cache=None):
        """
            :keyword str mount_root: directory for temporary mountpoints
            :keyword cache: where to look for existing mounts
            :type cache: :class:`MountsCache`
        """
        self.mount_root = mount_root
        self.cache = cache if cache is not None else MountsCache()

    @contextmanager
    def mounted(self, devspec):
        """ Mount a volume for the duration of a with block.

            :param str devspec: the device node, eg: "/dev/sda1"
            :returns: the path where the volume is mounted
            :raises: :class:`~.errors.MountError` if it cannot be mounted

            A volume that is already mounted is used where it is.
        """
        existing = self.cache.get_mountpoints(devspec)
        if existing:
            log.debug("%s is already mounted at %s", devspec, existing[0])
            yield existing[0]
            return

        mountpoint = tempfile.mkdtemp(prefix="spacealloc-", dir=self.mount_root)
        try:
            rc = util.mount(devspec, mountpoint, options="ro")
        except OSError as e:
            os.rmdir(mountpoint)
            raise MountError("failed to mount %s: %s" % (devspec, e), dev_name=devspec)

        if rc:
            os.rmdir(mountpoint)
            raise MountError("failed to mount %s (exit code %d)" % (devspec, rc), dev_name=devspec)

        try:
            yield mountpoint
        finally:
            if util.umount(mountpoint):
                log.error("failed to unmount %s from %s", devspec, mountpoint)
            else:
                os.rmdir(mountpoint)
