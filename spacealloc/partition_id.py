# partition_id.py
# Partition type tags.
#
# Copyright (C) 2024  Red Hat, Inc.
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

from enum import Enum


class PartitionId(Enum):

    """ Partition type tags, valued with their MBR system id.

        Tags with no MBR counterpart are valued above 0xff.
    """

    DOS12 = 0x01
    DOS16 = 0x06
    NTFS = 0x07
    DOS32 = 0x0c
    EXTENDED = 0x05
    PREP = 0x41
    SWAP = 0x82
    LINUX = 0x83
    LVM = 0x8e
    ESP = 0xef
    RAID = 0xfd
    UNKNOWN = 0x100
    BIOS_BOOT = 0x101

    @classmethod
    def from_mbr(cls, value):
        """ Return the tag for an MBR system id.

            :param value: the id as an int or a hex string (eg: "0x83")
            :rtype: :class:`PartitionId`
        """
        if isinstance(value, str):
            value = int(value, 16)

        # extended partitions come in several flavours
        if value in (0x0f, 0x85):
            value = cls.EXTENDED.value
        # and so do FAT ones
        elif value in (0x04, 0x0e):
            value = cls.DOS16.value
        elif value == 0x0b:
            value = cls.DOS32.value
        elif value > 0xff:
            return cls.UNKNOWN

        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN

    @classmethod
    def from_gpt(cls, guid):
        """ Return the tag for a GPT partition type GUID.

            :param str guid: the GUID in canonical form
            :rtype: :class:`PartitionId`
        """
        return GPT_TYPES.get(guid.lower(), cls.UNKNOWN)


GPT_TYPES = {
    "0fc63daf-8483-4772-8e79-3d69d8477de4": PartitionId.LINUX,
    "0657fd6d-a4ab-43c4-84e5-0933c84b4f4f": PartitionId.SWAP,
    "e6d6d379-f507-44c2-a23c-238f2a3df928": PartitionId.LVM,
    "a19d880f-05fc-4d3b-a006-743f0f84911e": PartitionId.RAID,
    "ebd0a0a2-b9e5-4433-87c0-68b6b72699c7": PartitionId.NTFS,
    "c12a7328-f81f-11d2-ba4b-00a0c93ec93b": PartitionId.ESP,
    "9e1a2d38-c612-4316-aa26-8b49521e5a8b": PartitionId.PREP,
    "21686148-6449-6e6f-744e-656564454649": PartitionId.BIOS_BOOT,
}

LINUX_SYSTEM_IDS = frozenset([PartitionId.LINUX, PartitionId.SWAP, PartitionId.LVM, PartitionId.RAID])
WINDOWS_SYSTEM_IDS = frozenset([PartitionId.NTFS, PartitionId.DOS32, PartitionId.DOS16, PartitionId.DOS12])
NO_INSTALLATION_IDS = frozenset([PartitionId.SWAP, PartitionId.EXTENDED, PartitionId.LVM])
