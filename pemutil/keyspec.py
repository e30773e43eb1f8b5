from dataclasses import dataclass
from typing import Optional, Union

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from .commons import KeySpecError


@dataclass(frozen=True)
class RSAPublicKeySpec:
    modulus: int
    public_exponent: int

    def to_public_key(self) -> rsa.RSAPublicKey:
        try:
            return rsa.RSAPublicNumbers(self.public_exponent, self.modulus).public_key()
        except ValueError as e:
            raise KeySpecError('格式错误：RSA公钥参数无效/Invalid RSA public key parameters.') from e


@dataclass(frozen=True)
class RSAPrivateCrtKeySpec:
    """RSA私钥，包含中国剩余定理（CRT）参数

    对应PKCS#1 RSAPrivateKey结构中version之后的八个整数。
    """
    modulus: int
    public_exponent: int
    private_exponent: int
    prime_p: int
    prime_q: int
    prime_exponent_p: int  # d mod (p-1)
    prime_exponent_q: int  # d mod (q-1)
    crt_coefficient: int  # (inverse of q) mod p

    @property
    def public_key_spec(self) -> RSAPublicKeySpec:
        return RSAPublicKeySpec(self.modulus, self.public_exponent)

    def to_private_key(self) -> rsa.RSAPrivateKey:
        """转换为cryptography的RSA私钥对象，用于签名和解密"""
        numbers = rsa.RSAPrivateNumbers(
            p=self.prime_p,
            q=self.prime_q,
            d=self.private_exponent,
            dmp1=self.prime_exponent_p,
            dmq1=self.prime_exponent_q,
            iqmp=self.crt_coefficient,
            public_numbers=rsa.RSAPublicNumbers(self.public_exponent, self.modulus),
        )
        try:
            return numbers.private_key()
        except ValueError as e:
            raise KeySpecError('格式错误：RSA私钥参数无效/Invalid RSA private key parameters.') from e

    def __repr__(self):
        return f'RSAPrivateCrtKeySpec(bits={self.modulus.bit_length()}, public_exponent={self.public_exponent})'


@dataclass(frozen=True)
class ECPrivateKeySpec:
    curve_oid: str
    private_value: int
    public_point: Optional[bytes] = None  # 未压缩或压缩形式的公钥点，SEC1中可选

    @property
    def curve(self) -> ec.EllipticCurve:
        """根据曲线OID查找命名曲线"""
        try:
            curve_type = ec.get_curve_for_oid(x509.ObjectIdentifier(self.curve_oid))
        except (LookupError, ValueError) as e:
            raise KeySpecError(f'格式错误：不支持的椭圆曲线{self.curve_oid}'
                               f'/Unsupported elliptic curve {self.curve_oid}.') from e
        return curve_type()

    def to_private_key(self) -> ec.EllipticCurvePrivateKey:
        try:
            return ec.derive_private_key(self.private_value, self.curve)
        except ValueError as e:
            raise KeySpecError('格式错误：EC私钥参数无效/Invalid EC private key parameters.') from e

    def __repr__(self):
        return f'ECPrivateKeySpec(curve_oid={self.curve_oid})'


KeySpec = Union[RSAPrivateCrtKeySpec, RSAPublicKeySpec, ECPrivateKeySpec]
