import re
import logging
from enum import Enum
from io import TextIOBase
from typing import List, Optional, TextIO, Union

from .commons import KeyNotFound, ParseResult, UnknownPemType, attempt, decode_base64
from .keyfactory import get_rsa_private_key_spec, get_rsa_public_key_spec
from .keyspec import RSAPrivateCrtKeySpec, RSAPublicKeySpec

logger = logging.getLogger(__name__)

_PEM_BEGIN_LINE_PATTERN = re.compile(r'^-{5}BEGIN.*', re.MULTILINE)
_PEM_END_LINE_PATTERN = re.compile(r'^-{5}END.*', re.MULTILINE)
_PEM_SPLIT_PATTERN = re.compile(r'(?=-----BEGIN)')
_LINE_BREAK_PATTERN = re.compile(r'\r\n|\r|\n')

_PKCS8_KEY_PATTERN = re.compile(r'-+BEGIN\s+.*PRIVATE\s+KEY[^-]*-+\s+'  # 头部
                                r'([a-z0-9+/=\s]+)'  # Base64数据
                                r'-+END\s+.*PRIVATE\s+KEY[^-]*-+',  # 尾部
                                re.IGNORECASE)


class PemItemType(Enum):
    """PEM块首行中的类型标记

    按声明顺序匹配首行，第一个被包含的标记即为类型。顺序不可调整：
    'CERTIFICATE'同样包含于'TRUSTED CERTIFICATE'和'X509 CERTIFICATE'中，
    'PUBLIC KEY'同样包含于'RSA PUBLIC KEY'中。
    """
    CERTIFICATE_REQUEST = 'CERTIFICATE REQUEST'
    NEW_CERTIFICATE_REQUEST = 'NEW CERTIFICATE REQUEST'
    CERTIFICATE = 'CERTIFICATE'
    TRUSTED_CERTIFICATE = 'TRUSTED CERTIFICATE'
    X509_CERTIFICATE = 'X509 CERTIFICATE'
    X509_CRL = 'X509 CRL'
    PKCS7 = 'PKCS7'
    CMS = 'CMS'
    ATTRIBUTE_CERTIFICATE = 'ATTRIBUTE CERTIFICATE'
    EC_PARAMETERS = 'EC PARAMETERS'
    PUBLIC_KEY = 'PUBLIC KEY'
    RSA_PUBLIC_KEY = 'RSA PUBLIC KEY'
    RSA_PRIVATE_KEY = 'RSA PRIVATE KEY'
    EC_PRIVATE_KEY = 'EC PRIVATE KEY'
    ENCRYPTED_PRIVATE_KEY = 'ENCRYPTED PRIVATE KEY'
    PRIVATE_KEY = 'PRIVATE KEY'

    @property
    def marker(self) -> str:
        return self.value

    def __str__(self):
        return self.value

    @staticmethod
    def from_marker(marker: str) -> Optional['PemItemType']:
        """按完整标记查找类型，不存在时返回None"""
        for item_type in PemItemType:
            if item_type.value == marker:
                return item_type
        return None

    @staticmethod
    def classify(first_line: str) -> 'PemItemType':
        for item_type in PemItemType:
            if item_type.value in first_line:
                return item_type
        raise UnknownPemType(f'格式错误：未知的PEM类型{first_line}/No valid PemItemType found: {first_line}')


_PRIVATE_KEY_TYPES = (PemItemType.PRIVATE_KEY, PemItemType.EC_PRIVATE_KEY,
                      PemItemType.ENCRYPTED_PRIVATE_KEY, PemItemType.RSA_PRIVATE_KEY)
_CERTIFICATE_TYPES = (PemItemType.CERTIFICATE, PemItemType.X509_CERTIFICATE)
_PUBLIC_KEY_TYPES = (PemItemType.PUBLIC_KEY, PemItemType.RSA_PUBLIC_KEY)


class PemItem:
    """单个PEM块，包含解码后的DER数据及其类型"""

    def __init__(self, content: bytes, item_type: PemItemType):
        self._content = bytes(content)
        self._item_type = item_type

    @property
    def content(self) -> bytes:
        return self._content

    @property
    def item_type(self) -> PemItemType:
        return self._item_type

    def is_private_key(self) -> bool:
        return self._item_type in _PRIVATE_KEY_TYPES

    def is_certificate(self) -> bool:
        return self._item_type in _CERTIFICATE_TYPES

    def is_public_key(self) -> bool:
        return self._item_type in _PUBLIC_KEY_TYPES

    def get_rsa_public_key_spec(self) -> RSAPublicKeySpec:
        return get_rsa_public_key_spec(self._content)

    def __eq__(self, other):
        if not isinstance(other, PemItem):
            return NotImplemented
        return self._item_type == other._item_type and self._content == other._content

    def __hash__(self):
        return hash((self._item_type, self._content))

    def __repr__(self):
        return f'PemItem({self._item_type.name}, {len(self._content)} bytes)'

    @staticmethod
    def parse(pem: str) -> 'PemItem':
        """解析单个PEM块

        :param pem: 以-----BEGIN开头的PEM文本
        :return: PemItem，首行没有已知类型标记时抛出UnknownPemType，Base64数据无效时抛出InvalidEncoding
        """
        pem = pem.strip()
        body = _PEM_END_LINE_PATTERN.sub('', _PEM_BEGIN_LINE_PATTERN.sub('', pem))
        body = body.replace('\r', '').replace('\n', '')

        first_line = _LINE_BREAK_PATTERN.split(pem, maxsplit=1)[0]
        item_type = PemItemType.classify(first_line)
        logger.debug('PEM首行%s识别为%s', first_line, item_type.name)

        return PemItem(decode_base64(body), item_type)

    @staticmethod
    def try_parse(pem: str) -> ParseResult:
        return attempt(PemItem.parse, pem)


class PemReader:
    """将包含多个PEM块的文本（如证书链、证书加私钥）拆分解析"""

    @staticmethod
    def parse(content: Optional[str]) -> List[PemItem]:
        if content is None:
            return []
        segments = _PEM_SPLIT_PATTERN.split(content.strip())
        items = [PemItem.parse(segment) for segment in segments if segment.strip()]
        logger.debug('共解析%d个PEM块', len(items))
        return items

    @staticmethod
    def try_parse(content: Optional[str]) -> ParseResult:
        return attempt(PemReader.parse, content)

    @staticmethod
    def load(source: Union[str, TextIOBase, TextIO]) -> List[PemItem]:
        """从文件路径或文本流中读取PEM块"""
        if isinstance(source, str):
            with open(source, 'r', encoding='iso-8859-1') as src_file:
                return PemReader.parse(src_file.read())
        return PemReader.parse(source.read())


class PemObject:
    """从任意文本中定位并解码唯一的私钥块

    头部和尾部可以在PRIVATE KEY前后带有其他单词，如BEGIN RSA PRIVATE KEY、BEGIN EC PRIVATE KEY。
    """

    def __init__(self, content: bytes):
        self._content = bytes(content)

    @property
    def content(self) -> bytes:
        return self._content

    def __eq__(self, other):
        if not isinstance(other, PemObject):
            return NotImplemented
        return self._content == other._content

    def __hash__(self):
        return hash(self._content)

    def __repr__(self):
        return f'PemObject({len(self._content)} bytes)'

    @staticmethod
    def from_key(content: str) -> 'PemObject':
        m = _PKCS8_KEY_PATTERN.search(content)
        if m is None:
            raise KeyNotFound('未找到PKCS#8私钥/Could not find a PKCS #8 private key')
        return PemObject(decode_base64(re.sub(r'\s', '', m.group(1))))

    @staticmethod
    def try_from_key(content: str) -> ParseResult:
        return attempt(PemObject.from_key, content)

    def get_rsa_key_spec(self) -> RSAPrivateCrtKeySpec:
        """按PKCS#1或PKCS#8格式解析RSA私钥，结构错误时抛出KeySpecError"""
        return get_rsa_private_key_spec(self._content)
