# size.py
# Python module to represent storage sizes
#
# Copyright (C) 2010  Red Hat, Inc.
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


import numbers

from bytesize import bytesize

from .errors import SizeArithmeticError

# we just need to make these objects available here
# pylint: disable=unused-import
from bytesize.bytesize import B, KiB, MiB, GiB, TiB, PiB, EiB, KB, MB, GB, TB, PB, EB
from bytesize.bytesize import ROUND_UP, ROUND_DOWN, ROUND_HALF_UP

UNLIMITED = "unlimited"


def _unlimited_spec(spec):
    """ Whether a value given to :class:`Size` stands for the unlimited size. """
    if isinstance(spec, Size):
        return spec.is_unlimited()
    if isinstance(spec, str):
        return spec.strip().lower() == UNLIMITED
    if isinstance(spec, numbers.Number) and not isinstance(spec, bool):
        return spec == -1
    return False


def _is_unlimited(value):
    return isinstance(value, Size) and value.is_unlimited()


def _is_zero(value):
    if isinstance(value, bytesize.Size):
        return value.get_bytes() == 0
    return value == 0


def _restore_size(nbytes, unlimited):
    if unlimited:
        return Size(UNLIMITED)
    return Size(bytesize.Size(nbytes))


class Size(bytesize.Size):
    """ Common class to represent storage device and filesystem sizes.
        Can handle parsing strings such as 45MB or 6.7GB to initialize
        itself, or can be initialized with a numerical size in bytes.
        Also generates human readable strings to a specified number of
        decimal places.

        There is a special "unlimited" size, created with ``Size(-1)`` or
        ``Size("unlimited")``, that compares greater than every other size.
        Arithmetic involving it follows these rules:

        - adding anything to unlimited (or unlimited to anything) yields
          unlimited
        - unlimited minus a concrete size yields unlimited, while a
          concrete size minus unlimited and unlimited minus unlimited raise
          :class:`~.errors.SizeArithmeticError`
        - multiplying or dividing unlimited by a positive number yields
          unlimited
        - floor division and modulo of unlimited raise
          :class:`~.errors.SizeArithmeticError`

        Only a -1 given to the constructor means unlimited, a -1 B result of
        some subtraction is just a negative size.
    """

    def __init__(self, spec=None):
        unlimited = _unlimited_spec(spec)
        bytesize.Size.__init__(self, -1 if unlimited else spec)
        self._unlimited = unlimited

    def is_unlimited(self):
        """ Whether this is the special unlimited size.

            :rtype: bool
        """
        return getattr(self, "_unlimited", False)

    def get_bytes(self):
        """ Return the number of bytes, -1 meaning unlimited.

            :rtype: int
        """
        if self.is_unlimited():
            return -1
        return bytesize.Size.get_bytes(self)

    def is_zero(self):
        return not self.is_unlimited() and self.get_bytes() == 0

    def __str__(self):
        if self.is_unlimited():
            return UNLIMITED
        return bytesize.Size.__str__(self)

    def __repr__(self):
        if self.is_unlimited():
            return "Size (%s)" % UNLIMITED
        return bytesize.Size.__repr__(self)

    def __bool__(self):
        return not self.is_zero()

    def __hash__(self):
        return hash(self.get_bytes())

    def __reduce__(self):
        return (_restore_size, (self.get_bytes(), self.is_unlimited()))

    def __eq__(self, other):
        if _is_unlimited(self) or _is_unlimited(other):
            return _is_unlimited(self) and _is_unlimited(other)
        return bytesize.Size.__eq__(self, other)

    def __ne__(self, other):
        return not self == other

    def __lt__(self, other):
        if self.is_unlimited():
            return False
        if _is_unlimited(other):
            return True
        return bytesize.Size.__lt__(self, other)

    def __le__(self, other):
        if _is_unlimited(other):
            return True
        if self.is_unlimited():
            return False
        return bytesize.Size.__le__(self, other)

    def __gt__(self, other):
        if _is_unlimited(other):
            return False
        if self.is_unlimited():
            return True
        return bytesize.Size.__gt__(self, other)

    def __ge__(self, other):
        if self.is_unlimited():
            return True
        if _is_unlimited(other):
            return False
        return bytesize.Size.__ge__(self, other)

    def __abs__(self):
        if self.is_unlimited():
            return self
        return Size(bytesize.Size.__abs__(self))

    def __neg__(self):
        if self.is_unlimited():
            raise SizeArithmeticError("cannot negate an unlimited size")
        return Size(0) - self

    def __add__(self, other):
        if self.is_unlimited() or _is_unlimited(other):
            return Size(UNLIMITED)
        return Size(bytesize.Size.__add__(self, other))

    # needed to make sum() work with Size arguments
    def __radd__(self, other):
        if self.is_unlimited():
            return self
        return Size(bytesize.Size.__radd__(self, other))

    def __sub__(self, other):
        if _is_unlimited(other):
            raise SizeArithmeticError("cannot subtract an unlimited size")
        if self.is_unlimited():
            return self
        return Size(bytesize.Size.__sub__(self, other))

    def __rsub__(self, other):
        if self.is_unlimited():
            raise SizeArithmeticError("cannot subtract an unlimited size")
        return Size(bytesize.Size.__rsub__(self, other))

    def __mul__(self, other):
        if self.is_unlimited():
            if isinstance(other, bytesize.Size) or other <= 0:
                raise SizeArithmeticError("cannot scale an unlimited size by %s" % other)
            return self
        return Size(bytesize.Size.__mul__(self, other))
    __rmul__ = __mul__

    def __truediv__(self, other):
        if _is_zero(other):
            raise ZeroDivisionError("division by zero")

        if self.is_unlimited() or _is_unlimited(other):
            if isinstance(other, bytesize.Size) or other < 0:
                raise SizeArithmeticError("cannot divide %s by %s" % (self, other))
            return self

        ret = bytesize.Size.__truediv__(self, other)
        if isinstance(ret, bytesize.Size):
            ret = Size(ret)

        return ret

    def __floordiv__(self, other):
        if self.is_unlimited() or _is_unlimited(other):
            raise SizeArithmeticError("floor division is not defined for unlimited sizes")
        if _is_zero(other):
            raise ZeroDivisionError("division by zero")

        ret = bytesize.Size.__floordiv__(self, other)
        if isinstance(ret, bytesize.Size):
            ret = Size(ret)

        return ret

    def __mod__(self, other):
        if self.is_unlimited() or _is_unlimited(other):
            raise SizeArithmeticError("modulo is not defined for unlimited sizes")
        if _is_zero(other):
            raise ZeroDivisionError("modulo by zero")
        return Size(bytesize.Size.__mod__(self, other))

    def __deepcopy__(self, memo_dict):
        if self.is_unlimited():
            return Size(UNLIMITED)
        return Size(bytesize.Size.__deepcopy__(self, memo_dict))

    # pylint: disable=arguments-differ
    def convert_to(self, spec=None):
        """ Return the size in the units indicated by the specifier.

            :param spec: a units specifier
            :type spec: a units specifier or :class:`Size`
            :returns: a numeric value in the units indicated by the specifier
            :rtype: Decimal
            :raises ValueError: if Size unit specifier is non-positive
            :raises SizeArithmeticError: for the unlimited size
        """
        if self.is_unlimited() or _is_unlimited(spec):
            raise SizeArithmeticError("cannot convert an unlimited size")

        if isinstance(spec, Size):
            if spec <= Size(0):
                raise ValueError("cannot convert to size %s" % spec)
            return bytesize.Size.__truediv__(self, spec)
        spec = B if spec is None else spec
        return bytesize.Size.convert_to(self, spec)

    def human_readable(self, min_unit=B, max_places=2, xlate=True):
        """ Return a string representation of this size with appropriate
            size specifier and in the specified number of decimal places.
            Values are always represented using binary not decimal units.
            For example, if the number of bytes represented by this size
            is 65531, expect the representation to be something like
            64.00 KiB, not 65.53 KB.

            :param min_unit: the smallest unit the returned representation should use
            :type min_unit: one of the B, KiB, MiB,... (binary) units from this module
                            or str ("B", "KiB",...)
            :param max_places: number of decimal places to use
            :type max_places: an integer type or NoneType
            :param bool xlate: If True, translate for current locale
            :returns: a representation of the size
            :rtype: str
        """
        if self.is_unlimited():
            return UNLIMITED

        if max_places is None:
            max_places = -1
        return bytesize.Size.human_readable(self, min_unit, max_places, xlate)

    # pylint: disable=arguments-differ
    def round_to_nearest(self, size, rounding):
        """ Rounds to nearest unit specified as a named constant or a Size.

            :param size: a size specifier
            :type size: a named constant like KiB, or any non-negative Size
            :keyword rounding: which direction to round
            :type rounding: one of ROUND_UP, ROUND_DOWN, or ROUND_HALF_UP
            :returns: Size rounded to nearest whole specified unit
            :rtype: :class:`Size`

            If size is Size(0), returns Size(0). The unlimited size is left
            alone.
        """
        if rounding not in (ROUND_UP, ROUND_DOWN, ROUND_HALF_UP):
            raise ValueError("invalid rounding specifier")

        if isinstance(size, Size):
            if size.is_unlimited():
                raise ValueError("invalid rounding size: %s" % size)
            if size.get_bytes() == 0:
                return Size(0)
            elif size < Size(0):
                raise ValueError("invalid rounding size: %s" % size)

        if self.is_unlimited():
            return self

        return Size(bytesize.Size.round_to_nearest(self, size, rounding))

    def ceil(self, grain):
        """ Smallest multiple of grain that is not smaller than this size.

            :param grain: the rounding granularity, a zero grain changes nothing
            :type grain: :class:`Size` or a named unit constant
            :rtype: :class:`Size`
        """
        if isinstance(grain, Size) and grain.get_bytes() == 0:
            return self
        return self.round_to_nearest(grain, rounding=ROUND_UP)

    def floor(self, grain):
        """ Biggest multiple of grain that is not bigger than this size.

            :param grain: the rounding granularity, a zero grain changes nothing
            :type grain: :class:`Size` or a named unit constant
            :rtype: :class:`Size`
        """
        if isinstance(grain, Size) and grain.get_bytes() == 0:
            return self
        return self.round_to_nearest(grain, rounding=ROUND_DOWN)

    ceil_to = ceil
    floor_to = floor

    @classmethod
    def sum(cls, sizes, rounding=None):
        """ Sum a collection of sizes.

            :param sizes: the sizes to add up
            :type sizes: iterable of :class:`Size`
            :keyword rounding: if given, every size is rounded up to a
                               multiple of it before adding it up
            :type rounding: :class:`Size` or NoneType
            :rtype: :class:`Size`
        """
        total = cls(0)
        for size in sizes:
            if rounding is not None:
                size = size.ceil(rounding)
            total += size
        return total
