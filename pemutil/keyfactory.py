"""从DER编码的密钥数据中提取密钥参数

支持PKCS#1/SEC1格式及PKCS#8格式的私钥，PKCS#8私钥的ASN.1结构为：

PrivateKeyInfo ::= SEQUENCE {
  version               Version,
  privateKeyAlgorithm   PrivateKeyAlgorithmIdentifier,
  privateKey            OCTET STRING,
  attributes            [0] IMPLICIT Attributes OPTIONAL
}
"""
import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple, cast

from asn1util import (asn1_decode, ASN1DataType, ASN1ObjectIdentifier, Tag,
                      TAG_BitString, TAG_Integer, TAG_ObjectIdentifier, TAG_OctetString, TAG_Sequence)

from .commons import KeySpecError, ParseResult, attempt
from .keyspec import ECPrivateKeySpec, KeySpec, RSAPrivateCrtKeySpec, RSAPublicKeySpec

logger = logging.getLogger(__name__)

OID_RSA_ENCRYPTION = '1.2.840.113549.1.1.1'
OID_EC_PUBLIC_KEY = '1.2.840.10045.2.1'

TAG_ECParameters = Tag(b'\xa0')
TAG_ECPublicKey = Tag(b'\xa1')


def _retrieve_element(element: ASN1DataType, expected_tags: Optional[Sequence[Tag]], field_name: str):
    """尝试匹配ASN.1元素及期望的类型"""
    if expected_tags is None or element.tag in expected_tags:
        return element
    raise KeySpecError(f'格式错误：{field_name}项类型不匹配/Unexpected type of {field_name}.')


def _retrieve_explicit_element(wrapper: ASN1DataType, expected_tags: Sequence[Tag], field_name: str):
    """取出EXPLICIT包装的唯一ASN.1元素"""
    if len(wrapper.value) != 1:
        raise KeySpecError(f'格式错误：EXPLICIT域{field_name}内元素不唯一'
                           f'/Explicitly tagged {field_name} does NOT contain exactly one element.')
    return _retrieve_element(wrapper.value[0], expected_tags, field_name)


def _decode_sequence(octets: bytes, structure: str, min_length: int) -> List[ASN1DataType]:
    """将字节串解码为单个SEQUENCE并返回其中的元素"""
    try:
        elements = asn1_decode(bytes(octets))
    except Exception as e:
        raise KeySpecError(f'格式错误：{structure}不是有效的DER数据/Invalid DER: {structure}.') from e
    if len(elements) != 1:
        raise KeySpecError(f'格式错误：{structure}外有冗余数据/Redundant data besides {structure}.')
    sequence = _retrieve_element(elements[0], (TAG_Sequence,), structure)
    if len(sequence.value) < min_length:
        raise KeySpecError(f'格式错误：{structure}的元素数不足{min_length}'
                           f'/"{structure}" contains less than {min_length} elements.')
    return sequence.value


def _resolve_algorithm_identifier(element: ASN1DataType) -> Tuple[str, Optional[ASN1DataType]]:
    """解析AlgorithmIdentifier，返回算法OID及参数"""
    _retrieve_element(element, (TAG_Sequence,), 'AlgorithmIdentifier')
    if len(element.value) == 0:
        raise KeySpecError('格式错误：AlgorithmIdentifier为空/Empty AlgorithmIdentifier.')
    algorithm = cast(ASN1ObjectIdentifier,
                     _retrieve_element(element.value[0], (TAG_ObjectIdentifier,), 'Algorithm'))
    parameters = element.value[1] if len(element.value) > 1 else None
    return algorithm.oid_string, parameters


def _unwrap_pkcs8(elements: List[ASN1DataType], expected_oid: str, algorithm_name: str):
    """若为PKCS#8结构则校验算法并返回(内层私钥数据, 算法参数)，否则返回None"""
    if elements[1].tag != TAG_Sequence:
        return None
    oid, parameters = _resolve_algorithm_identifier(elements[1])
    if oid != expected_oid:
        raise KeySpecError(f'Unsupported Public Key Algorithm. Expected {algorithm_name} ({expected_oid}), '
                           f'but was: {oid}')
    if len(elements) < 3:
        raise KeySpecError('格式错误：PrivateKeyInfo缺少privateKey/Missing privateKey in PrivateKeyInfo.')
    private_key = _retrieve_element(elements[2], (TAG_OctetString,), 'PrivateKey')
    return private_key.value, parameters


def _integers(elements: Sequence[ASN1DataType], field_names: Sequence[str]) -> List[int]:
    return [_retrieve_element(e, (TAG_Integer,), n).value for e, n in zip(elements, field_names)]


_RSA_PRIVATE_KEY_FIELDS = ('Modulus', 'PublicExponent', 'PrivateExponent', 'Prime1', 'Prime2',
                           'Exponent1', 'Exponent2', 'Coefficient')


def get_rsa_private_key_spec(octets: bytes) -> RSAPrivateCrtKeySpec:
    """解析PKCS#1或PKCS#8格式的RSA私钥

    RSAPrivateKey ::= SEQUENCE {
      version           Version,
      modulus           INTEGER,  -- n
      publicExponent    INTEGER,  -- e
      privateExponent   INTEGER,  -- d
      prime1            INTEGER,  -- p
      prime2            INTEGER,  -- q
      exponent1         INTEGER,  -- d mod (p-1)
      exponent2         INTEGER,  -- d mod (q-1)
      coefficient       INTEGER,  -- (inverse of q) mod p
      otherPrimeInfos   OtherPrimeInfos OPTIONAL
    }
    """
    elements = _decode_sequence(octets, 'RSAPrivateKey', 2)
    pkcs8 = _unwrap_pkcs8(elements, OID_RSA_ENCRYPTION, 'RSA')
    if pkcs8 is not None:
        logger.debug('PKCS#8封装的RSA私钥')
        return get_rsa_private_key_spec(pkcs8[0])

    if len(elements) < 9:
        raise KeySpecError('格式错误：RSAPrivateKey的元素数不足9/"RSAPrivateKey" contains less than 9 elements.')
    _retrieve_element(elements[0], (TAG_Integer,), 'Version')
    return RSAPrivateCrtKeySpec(*_integers(elements[1:9], _RSA_PRIVATE_KEY_FIELDS))


def get_rsa_public_key_spec(octets: bytes) -> RSAPublicKeySpec:
    """解析PKCS#1 RSAPublicKey或X.509 SubjectPublicKeyInfo格式的RSA公钥

    SubjectPublicKeyInfo中的RSAPublicKey以BIT STRING形式存放（openssl -pubout的输出格式）。
    """
    elements = _decode_sequence(octets, 'RSAPublicKey', 2)
    if elements[0].tag == TAG_Sequence:
        oid, _ = _resolve_algorithm_identifier(elements[0])
        if oid != OID_RSA_ENCRYPTION:
            raise KeySpecError(f'Unsupported Public Key Algorithm. Expected RSA ({OID_RSA_ENCRYPTION}), '
                               f'but was: {oid}')
        public_key = _retrieve_element(elements[1], (TAG_BitString,), 'SubjectPublicKey')
        elements = _decode_sequence(public_key.value, 'RSAPublicKey', 2)

    modulus, public_exponent = _integers(elements[:2], ('Modulus', 'PublicExponent'))
    return RSAPublicKeySpec(modulus, public_exponent)


def get_ec_private_key_spec(octets: bytes) -> ECPrivateKeySpec:
    """解析SEC1或PKCS#8格式的EC私钥

    ECPrivateKey ::= SEQUENCE {
      version           INTEGER { ecPrivkeyVer1(1) },
      privateKey        OCTET STRING,
      parameters        [0] ECParameters {{ NamedCurve }} OPTIONAL,
      publicKey         [1] BIT STRING OPTIONAL
    }
    """
    elements = _decode_sequence(octets, 'ECPrivateKey', 2)
    curve_oid = None
    pkcs8 = _unwrap_pkcs8(elements, OID_EC_PUBLIC_KEY, 'EC')
    if pkcs8 is not None:
        logger.debug('PKCS#8封装的EC私钥')
        inner, parameters = pkcs8
        if parameters is None or parameters.tag != TAG_ObjectIdentifier:
            raise KeySpecError('格式错误：PKCS#8中缺少命名曲线/Cannot decode EC parameter OID.')
        curve_oid = cast(ASN1ObjectIdentifier, parameters).oid_string
        elements = _decode_sequence(inner, 'ECPrivateKey', 2)

    _retrieve_element(elements[0], (TAG_Integer,), 'Version')
    private_key = _retrieve_element(elements[1], (TAG_OctetString,), 'PrivateKey')

    public_point = None
    for element in elements[2:]:
        if element.tag == TAG_ECParameters and curve_oid is None:
            named_curve = _retrieve_explicit_element(element, (TAG_ObjectIdentifier,), 'NamedCurve')
            curve_oid = cast(ASN1ObjectIdentifier, named_curve).oid_string
        elif element.tag == TAG_ECPublicKey:
            public_point = bytes(_retrieve_explicit_element(element, (TAG_BitString,), 'PublicKey').value)

    if curve_oid is None:
        raise KeySpecError('格式错误：无法解析EC曲线参数/Cannot decode EC parameter OID.')

    return ECPrivateKeySpec(curve_oid, int.from_bytes(private_key.value, byteorder='big', signed=False),
                            public_point)


class PrivateKeyStrategy(ABC):
    """按算法从解码后的私钥数据中提取密钥参数"""

    @property
    @abstractmethod
    def name(self) -> str:
        raise NotImplementedError()

    @abstractmethod
    def extract(self, private_key: bytes) -> KeySpec:
        """提取密钥参数

        :param private_key: DER编码的私钥
        :return: 密钥参数，数据结构不符时抛出KeySpecError
        """
        raise NotImplementedError()

    def try_extract(self, private_key: bytes) -> ParseResult:
        return attempt(self.extract, private_key)

    def __repr__(self):
        return f'{type(self).__name__}({self.name})'


class RSAPrivateKeyStrategy(PrivateKeyStrategy):
    @property
    def name(self) -> str:
        return 'rsa'

    def extract(self, private_key: bytes) -> RSAPrivateCrtKeySpec:
        return get_rsa_private_key_spec(private_key)


class ECPrivateKeyStrategy(PrivateKeyStrategy):
    @property
    def name(self) -> str:
        return 'ec'

    def extract(self, private_key: bytes) -> ECPrivateKeySpec:
        return get_ec_private_key_spec(private_key)


RSA = RSAPrivateKeyStrategy()
EC = ECPrivateKeyStrategy()

# 只读，按顺序匹配
PRIVATE_KEY_STRATEGIES: Tuple[PrivateKeyStrategy, ...] = (RSA, EC)


class PrivateKeyFactory:

    @staticmethod
    def create(key_type: Optional[str]) -> Optional[PrivateKeyStrategy]:
        """按名称（不区分大小写）查找私钥策略，找不到时返回None"""
        if not key_type:
            return None
        for strategy in PRIVATE_KEY_STRATEGIES:
            if strategy.name.lower() == key_type.lower():
                logger.debug('私钥类型%s使用%s', key_type, strategy)
                return strategy
        return None

    @staticmethod
    def is_type_supported(key_type: Optional[str]) -> bool:
        return PrivateKeyFactory.create(key_type) is not None
