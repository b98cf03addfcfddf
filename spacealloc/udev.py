# udev.py
# Python module for querying the udev database for device information.
#
# Copyright (C) 2009, 2013  Red Hat, Inc.
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
import re
import logging
import pyudev

from . import util
from .errors import UdevError
from .size import Size

log = logging.getLogger("spacealloc")

_udev_context = None

# sizes in sysfs and in the partition entries are in 512 byte units
SECTOR_SIZE = 512

ignored_device_names = []
""" device name regexes to ignore; this should be empty by default """


def global_udev():
    """ The pyudev context, created on first use. """
    global _udev_context  # pylint: disable=global-statement
    if _udev_context is None:
        try:
            _udev_context = pyudev.Context()
        except ImportError as e:
            raise UdevError("libudev is not available: %s" % e)
    return _udev_context


def device_to_dict(device):
    # only the properties are used, plus a couple of sysfs attributes
    result = dict(device.properties)
    result["SYS_NAME"] = device.sys_name
    result["SYS_PATH"] = device.sys_path
    return result


def get_devices(subsystem="block"):
    settle()

    result = []
    for device in global_udev().list_devices(subsystem=subsystem):
        if _is_ignored_blockdev(device.sys_name):
            log.debug("ignoring block device %s", device.sys_name)
            continue
        result.append(device_to_dict(device))

    return result


def settle():
    """ Wait for the udev queue to settle. """
    # wait maximal 300 seconds for udev to be done running blkid etc.
    util.run_program(["udevadm", "settle", "--timeout=300"])


def _is_ignored_blockdev(dev_name):
    """Is this a blockdev we never want for an install?"""
    if dev_name.startswith("ram") or dev_name.startswith("fd") or dev_name.startswith("zram"):
        return True

    if ignored_device_names:
        if any(re.search(expr, dev_name) for expr in ignored_device_names):
            return True

    return False


# These are functions for retrieving specific pieces of information from
# udev database entries.


def device_get_name(udev_info):
    """ Return the best name for a device based on the udev db data. """
    return udev_info["SYS_NAME"]


def device_get_format(udev_info):
    """ Return a device's format type as reported by udev. """
    return udev_info.get("ID_FS_TYPE")


def device_get_label(udev_info):
    """ Get the label from the device's format as reported by udev. """
    return udev_info.get("ID_FS_LABEL")


def device_get_sysfs_path(info):
    return info["SYS_PATH"]


def device_get_major(info):
    return int(info["MAJOR"])


def device_get_minor(info):
    return int(info["MINOR"])


def device_get_devname(info):
    return info.get('DEVNAME')


def device_get_bus(udev_info):
    """ Get the bus a device is connected to the system by. """
    return udev_info.get("ID_BUS", "").upper()


def device_is_cdrom(info):
    """ Return True if the device is an optical drive. """
    return info.get("ID_CDROM") == "1"


def device_is_dm(info):
    """ Return True if the device is a device-mapper device. """
    return 'DM_NAME' in info


def device_is_md(info):
    """ Return True if the device is a mdraid array device. """
    return "MD_LEVEL" in info and info.get("DEVTYPE") == "disk"


def device_is_loop(info):
    """ Return True if the device is a loop device. """
    return device_get_name(info).startswith("loop")


def device_is_disk(info):
    """ Return True if the device is a disk that can be partitioned.

        Since so many things are represented as disks by udev, we have to
        define what is a disk in terms of what is not a disk.
    """
    return (info.get("DEVTYPE") == "disk" and
            not (device_is_cdrom(info) or
                 device_is_dm(info) or
                 device_is_md(info) or
                 device_is_loop(info)))


def device_is_partition(info):
    return info.get("DEVTYPE") == "partition"


def device_get_size(info):
    """ Size of a block device, from its sysfs size attribute. """
    sectors = util.get_sysfs_attr(device_get_sysfs_path(info), "size")
    if not sectors:
        return None
    return Size(int(sectors) * SECTOR_SIZE)


def device_get_disklabel_type(info):
    """ Return the type of disklabel on the device or None. """
    if device_is_partition(info):
        # For partitions, ID_PART_TABLE_TYPE is the disklabel type for the
        # partition's disk. It does not mean the partition contains a disklabel.
        return None

    return info.get("ID_PART_TABLE_TYPE")


def device_get_partition_disk_majorminor(info):
    """ The "major:minor" string of the disk holding a partition. """
    return info.get("ID_PART_ENTRY_DISK")


def device_get_part_number(info):
    number = info.get("ID_PART_ENTRY_NUMBER")
    return int(number) if number else None


def device_get_part_offset(info):
    """ Get the start of a partition on its disk as reported by udev. """
    offset = info.get("ID_PART_ENTRY_OFFSET")
    return Size(int(offset) * SECTOR_SIZE) if offset else None


def device_get_part_size(info):
    """ Get size for specified partition as reported by udev. """
    size = info.get("ID_PART_ENTRY_SIZE")
    return Size(int(size) * SECTOR_SIZE) if size else None


def device_get_part_type(info):
    """ The partition type, an MBR id like "0x83" or a GPT type GUID. """
    return info.get("ID_PART_ENTRY_TYPE")


def device_get_sysfs_partition_disk(info):
    """ Name of the disk holding a partition, from the sysfs hierarchy. """
    sysfs_path = device_get_sysfs_path(info)
    return os.path.basename(os.path.dirname(sysfs_path))
