#
# arch.py
#
# Copyright (C) 1999, 2000, 2001, 2002, 2003, 2004, 2005, 2006, 2007, 2013
# Red Hat, Inc.  All rights reserved.
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.
#


import os

_X86_PREFIXES = ("athlon", "amd")
_X86_NAMES = ("x86_64", "ia32e")


def is_x86():
    """ Whether the machine is an x86 one (i*86, athlon*, amd*, x86_64, ia32e).

        Windows partitions are only looked for (and resized) on x86.

        :rtype: bool
    """
    machine = os.uname()[4]
    if machine.startswith("i") and machine.endswith("86"):
        return True
    return machine.startswith(_X86_PREFIXES) or machine in _X86_NAMES
