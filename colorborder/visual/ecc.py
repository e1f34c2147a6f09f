"""Reed-Solomon error correction over GF(2^8).

Systematic codec used to protect the identifier bytes carried by the
border.  The field is built from the primitive polynomial 0x11d with
generator 2 and the first consecutive root at alpha^0, which makes the
parity bytes identical to those produced by ``reedsolo.RSCodec(nsym)``.

Decoding corrects up to ``nsym // 2`` byte errors and fails closed:
anything it cannot certify is reported as ``None``, never as a guessed
payload.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

PRIMITIVE_POLY = 0x11D
GENERATOR = 2
FIELD_SIZE = 256
FIELD_ORDER = FIELD_SIZE - 1  # multiplicative group order
MAX_CODEWORD = FIELD_ORDER

DEFAULT_REDUNDANCY_FACTOR = 2.0


# ---------------------------------------------------------------------------
# Field arithmetic
# ---------------------------------------------------------------------------

def _build_tables() -> tuple[tuple[int, ...], tuple[int, ...]]:
    """Antilog table doubled to 512 entries so products skip a modulo."""
    exp = [0] * (FIELD_ORDER * 2 + 2)
    log = [0] * FIELD_SIZE
    x = 1
    for i in range(FIELD_ORDER):
        exp[i] = x
        log[x] = i
        x <<= 1
        if x & FIELD_SIZE:
            x ^= PRIMITIVE_POLY
    for i in range(FIELD_ORDER, len(exp)):
        exp[i] = exp[i - FIELD_ORDER]
    return tuple(exp), tuple(log)


GF_EXP, GF_LOG = _build_tables()


def gf_mul(x: int, y: int) -> int:
    if x == 0 or y == 0:
        return 0
    return GF_EXP[GF_LOG[x] + GF_LOG[y]]


def gf_div(x: int, y: int) -> int:
    if y == 0:
        raise ZeroDivisionError("division by zero in GF(2^8)")
    if x == 0:
        return 0
    return GF_EXP[(GF_LOG[x] + FIELD_ORDER - GF_LOG[y]) % FIELD_ORDER]


def gf_pow(x: int, power: int) -> int:
    if x == 0:
        return 0 if power else 1
    return GF_EXP[(GF_LOG[x] * power) % FIELD_ORDER]


def gf_inverse(x: int) -> int:
    return gf_div(1, x)


# ---------------------------------------------------------------------------
# Polynomials (lists of field elements, highest degree first)
# ---------------------------------------------------------------------------

def poly_scale(p: Sequence[int], x: int) -> list[int]:
    return [gf_mul(c, x) for c in p]


def poly_add(p: Sequence[int], q: Sequence[int]) -> list[int]:
    n = max(len(p), len(q))
    out = [0] * n
    for i, c in enumerate(p):
        out[i + n - len(p)] = c
    for i, c in enumerate(q):
        out[i + n - len(q)] ^= c
    return out


def poly_mul(p: Sequence[int], q: Sequence[int]) -> list[int]:
    out = [0] * (len(p) + len(q) - 1)
    for j, qc in enumerate(q):
        if qc == 0:
            continue
        for i, pc in enumerate(p):
            out[i + j] ^= gf_mul(pc, qc)
    return out


def poly_eval(p: Sequence[int], x: int) -> int:
    """Horner evaluation."""
    y = p[0]
    for c in p[1:]:
        y = gf_mul(y, x) ^ c
    return y


def poly_divmod(dividend: Sequence[int],
                divisor: Sequence[int]) -> tuple[list[int], list[int]]:
    """Synthetic division by a monic *divisor*; returns (quotient, remainder)."""
    if len(divisor) < 2 or divisor[0] != 1:
        raise ValueError("divisor must be monic with degree >= 1")
    out = list(dividend)
    for i in range(len(dividend) - len(divisor) + 1):
        coef = out[i]
        if coef == 0:
            continue
        for j in range(1, len(divisor)):
            if divisor[j]:
                out[i + j] ^= gf_mul(divisor[j], coef)
    sep = len(out) - (len(divisor) - 1)
    return out[:sep], out[sep:]


@lru_cache(maxsize=None)
def generator_poly(nsym: int) -> tuple[int, ...]:
    """Product of (x - alpha^i) for i in 0..nsym-1."""
    g = [1]
    for i in range(nsym):
        g = poly_mul(g, [1, gf_pow(GENERATOR, i)])
    return tuple(g)


# ---------------------------------------------------------------------------
# Parity sizing
# ---------------------------------------------------------------------------

def calculate_parity_bytes(payload_len: int,
                           redundancy_factor: float = DEFAULT_REDUNDANCY_FACTOR
                           ) -> int:
    """Number of parity bytes for *payload_len* at *redundancy_factor*.

    The codeword is roughly ``payload_len * redundancy_factor`` bytes long:
    the default factor of 2.0 doubles a 16-byte payload to 32 bytes
    (nsym=16).  At least 2 parity bytes are always added, and the result
    is capped so the codeword still fits the 255-byte field limit.
    Encoder and decoder must call this with identical arguments.
    """
    if not redundancy_factor > 0:
        raise ValueError(f"redundancy_factor must be positive, got {redundancy_factor!r}")
    if payload_len <= 0 or payload_len > MAX_CODEWORD - 2:
        raise ValueError(f"payload length {payload_len} out of range")
    nsym = max(2, math.ceil(payload_len * (redundancy_factor - 1)))
    return min(nsym, MAX_CODEWORD - payload_len)


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------

@dataclass
class ECCConfig:
    """Error correction configuration.

    nsym: number of parity bytes. Corrects up to nsym//2 byte errors.
    """
    nsym: int = 16


class ECCCodec:
    """Reed-Solomon encoder/decoder with a fixed parity length."""

    def __init__(self, config: ECCConfig | None = None):
        self.config = config or ECCConfig()
        if not 1 <= self.config.nsym < MAX_CODEWORD:
            raise ValueError(f"nsym must be in 1..{MAX_CODEWORD - 1}")
        self._gen = generator_poly(self.config.nsym)

    @property
    def nsym(self) -> int:
        return self.config.nsym

    @property
    def overhead(self) -> int:
        """Number of bytes of ECC overhead added per encode."""
        return self.config.nsym

    @property
    def max_errors(self) -> int:
        """Largest number of byte errors decode can correct."""
        return self.config.nsym // 2

    def max_payload(self, block_size: int = MAX_CODEWORD) -> int:
        """Maximum payload bytes that fit in a block of *block_size* bytes."""
        return block_size - self.config.nsym

    def encode(self, data: bytes) -> bytes:
        """Return data + parity bytes."""
        if len(data) + self.nsym > MAX_CODEWORD:
            raise ValueError(
                f"codeword of {len(data) + self.nsym} bytes exceeds {MAX_CODEWORD}")
        _, remainder = poly_divmod(list(data) + [0] * self.nsym, self._gen)
        return bytes(data) + bytes(remainder)

    def syndromes(self, codeword: Sequence[int]) -> list[int]:
        return [poly_eval(codeword, gf_pow(GENERATOR, i))
                for i in range(self.nsym)]

    def decode(self, data: bytes) -> bytes | None:
        """Decode data with error correction.

        Returns the corrected original data, or None if uncorrectable.
        """
        corrected = self.correct(data)
        if corrected is None:
            return None
        codeword, _ = corrected
        return codeword[:len(codeword) - self.nsym]

    def correct(self, data: bytes) -> Optional[tuple[bytes, list[int]]]:
        """Correct a received codeword.

        Returns (corrected codeword, error positions) or None when the
        errors cannot be certified as corrected.
        """
        if len(data) > MAX_CODEWORD:
            raise ValueError(f"codeword longer than {MAX_CODEWORD} bytes")
        if len(data) <= self.nsym:
            return None

        msg = list(data)
        synd = self.syndromes(msg)
        if not any(synd):
            return bytes(msg), []

        err_loc = self._find_error_locator(synd)
        n_errors = len(err_loc) - 1
        if n_errors * 2 > self.nsym:
            logger.debug("Locator degree %d exceeds capacity %d",
                         n_errors, self.max_errors)
            return None

        err_pos = self._find_errors(err_loc, len(msg))
        if len(err_pos) != n_errors:
            logger.debug("Chien search found %d roots for degree %d locator",
                         len(err_pos), n_errors)
            return None

        magnitudes = self._error_magnitudes(synd, err_pos, len(msg))
        if magnitudes is None:
            return None
        for pos, mag in zip(err_pos, magnitudes):
            msg[pos] ^= mag

        if any(self.syndromes(msg)):
            logger.debug("Residual syndromes after correction")
            return None
        return bytes(msg), sorted(err_pos)

    def _find_error_locator(self, synd: list[int]) -> list[int]:
        """Berlekamp-Massey; returns the locator highest degree first."""
        err_loc = [1]
        old_loc = [1]
        for i in range(self.nsym):
            delta = synd[i]
            for j in range(1, min(len(err_loc), i + 1)):
                delta ^= gf_mul(err_loc[-(j + 1)], synd[i - j])
            old_loc = old_loc + [0]
            if delta != 0:
                if len(old_loc) > len(err_loc):
                    new_loc = poly_scale(old_loc, delta)
                    old_loc = poly_scale(err_loc, gf_inverse(delta))
                    err_loc = new_loc
                err_loc = poly_add(err_loc, poly_scale(old_loc, delta))
        while len(err_loc) > 1 and err_loc[0] == 0:
            del err_loc[0]
        return err_loc

    @staticmethod
    def _find_errors(err_loc: list[int], length: int) -> list[int]:
        """Chien search over every codeword position."""
        reciprocal = err_loc[::-1]
        positions = []
        for i in range(length):
            if poly_eval(reciprocal, gf_pow(GENERATOR, i)) == 0:
                positions.append(length - 1 - i)
        return positions

    @staticmethod
    def _error_magnitudes(synd: list[int], err_pos: list[int],
                          length: int) -> Optional[list[int]]:
        """Forney's formula for the value of each located error."""
        coef_pos = [length - 1 - p for p in err_pos]

        # Errata locator: product of (1 + X_k x), highest degree first.
        loc = [1]
        for cp in coef_pos:
            loc = poly_mul(loc, [gf_pow(GENERATOR, cp), 1])

        # Evaluator: (x * S(x) * locator(x)) mod x^(v+1).
        synd_poly = list(reversed(synd)) + [0]
        nu = len(loc) - 1
        evaluator = poly_mul(synd_poly, loc)[-(nu + 1):]

        xs = [gf_pow(GENERATOR, cp) for cp in coef_pos]
        magnitudes = []
        for i, xi in enumerate(xs):
            xi_inv = gf_inverse(xi)
            loc_prime = 1
            for j, xj in enumerate(xs):
                if j != i:
                    loc_prime = gf_mul(loc_prime, 1 ^ gf_mul(xi_inv, xj))
            if loc_prime == 0:
                return None
            y = gf_mul(xi, poly_eval(evaluator, xi_inv))
            magnitudes.append(gf_div(y, loc_prime))
        return magnitudes
