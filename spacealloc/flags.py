# flags.py
#
# Copyright (C) 2013  Red Hat, Inc.
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

from .size import Size


class Flags(object):

    def __init__(self):
        #
        # disk analysis
        #

        # how many disks are mounted looking for the installation medium
        self.disk_check_limit = 10

        # file compared against the running system to recognize the
        # installation medium
        self.installation_check_file = "/control.xml"

        # path that must exist in a mounted volume for it to count as a
        # Windows system partition
        self.windows_check_path = "windows/system32"

        #
        # space making and distribution
        #

        # free regions smaller than this are not worth considering
        self.min_free_space_size = Size("30 MiB")

        # upper bound for the number of candidate distributions that are
        # evaluated; the search is an approximation beyond this point
        self.max_distribution_candidates = 100000

        # set to False since an extended partition with no logical
        # partitions left in it is just wasted space
        self.keep_empty_ext_partitions = False

        # None means only on x86, where Windows is expected
        self.windows_resize = None


flags = Flags()
