# errors.py
# Exception classes for the storage proposal space allocation engine.
#
# Copyright (C) 2009  Red Hat, Inc.
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


class StorageError(Exception):

    def __init__(self, *args, **kwargs):
        self.hardware_fault = kwargs.pop("hardware_fault", False)
        super(StorageError, self).__init__(*args, **kwargs)

# Size


class SizeArithmeticError(StorageError, ArithmeticError):

    """ An operation involving an unlimited size has no defined result. """

# Device


class DeviceError(StorageError):
    pass


class DeviceTreeError(StorageError):
    pass


class DeviceNotFoundError(DeviceTreeError):
    pass


class DeviceResizeError(DeviceError):
    pass


class MountError(DeviceError):

    """ A volume could not be mounted (or unmounted) for inspection. """

    def __init__(self, message, dev_name=None):
        super(MountError, self).__init__(message)
        self.dev_name = dev_name

# DiskLabel


class DiskLabelError(StorageError):
    pass


class DiskLabelScanError(DiskLabelError):

    """ The partition table of a disk could not be read. """
    suggestion = ("For some reason we were unable to read the partition "
                  "table of a disk. The disk will be ignored.")

    def __init__(self, message, dev_name=None):
        super(DiskLabelScanError, self).__init__(message)
        self.dev_name = dev_name

# partitioning


class PartitioningError(StorageError):
    pass


class ProposalError(StorageError):

    """ Base class for errors aborting an allocation attempt. """


class NoDiskSpaceError(ProposalError):

    """ Not enough free space can be found or made for the planned devices. """


class NoMorePartitionSlotError(ProposalError):

    """ The partition table has no room for the needed partitions. """

# udev


class UdevError(StorageError):
    pass
