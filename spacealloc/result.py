# result.py
# Outcome of a proposal step.
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


class Result(object):

    """ The value computed by a proposal step or the error that stopped it.

        Exactly one of :attr:`value` and :attr:`error` is meaningful.
        Callers that prefer exceptions use :meth:`unwrap`.
    """

    def __init__(self, value=None, error=None):
        self.value = value
        self.error = error

    def __repr__(self):
        if self.success:
            return "<Result value=%r>" % (self.value,)
        return "<Result error=%r>" % (self.error,)

    def __bool__(self):
        return self.success

    @property
    def success(self):
        return self.error is None

    def unwrap(self):
        """ Return the value or raise the error. """
        if self.error is not None:
            raise self.error
        return self.value
