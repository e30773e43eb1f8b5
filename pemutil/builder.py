import logging
import re

from .commons import KeyNotFound, ParseResult, UnrecognizedFormat, UnsupportedKeyType, attempt, decode_base64
from .encoding import PrivateKeyEncoding, PrivateKeyEncodingValidator, unescape_whitespace
from .keyfactory import PrivateKeyFactory
from .keyspec import KeySpec
from .pem import PemItemType, PemReader

logger = logging.getLogger(__name__)

_KEY_FORMATS = {
    PemItemType.PKCS7: 'pkcs7',
    PemItemType.RSA_PUBLIC_KEY: 'pkcs1',
    PemItemType.RSA_PRIVATE_KEY: 'pkcs1',
    PemItemType.EC_PRIVATE_KEY: 'pkcs1',
    PemItemType.ENCRYPTED_PRIVATE_KEY: 'pkcs8',
    PemItemType.PUBLIC_KEY: 'pkcs8',
    PemItemType.PRIVATE_KEY: 'pkcs8',
}


class PrivateKeyBuilder:
    """从PEM或Base64编码的DER私钥字符串创建密钥参数，PEM形式仅支持PKCS#1/SEC1格式"""

    @staticmethod
    def create(private_key: str, private_key_type: str) -> KeySpec:
        strategy = PrivateKeyFactory.create(private_key_type)
        if strategy is None:
            raise UnsupportedKeyType(f'不支持的私钥类型/Private key type not supported: {private_key_type}')

        encoding = PrivateKeyEncodingValidator.get_format(private_key)
        if encoding == PrivateKeyEncoding.DER:
            octets = decode_base64(re.sub(r'\s', '', unescape_whitespace(private_key)))
        elif encoding == PrivateKeyEncoding.PEM:
            items = [i for i in PemReader.parse(unescape_whitespace(private_key)) if i.is_private_key()]
            if not items:
                raise KeyNotFound('PEM数据中没有私钥/No private key found in PEM content.')
            key_format = _KEY_FORMATS[items[0].item_type]
            if key_format != 'pkcs1':
                raise UnsupportedKeyType(f'仅支持PKCS#1格式/PKCS#1 supported only. Format: {key_format}')
            octets = items[0].content
        else:
            raise UnrecognizedFormat('私钥为空/Private key is empty.')

        logger.debug('%s编码的私钥，长度%d', encoding.name, len(octets))
        return strategy.extract(octets)

    @staticmethod
    def try_create(private_key: str, private_key_type: str) -> ParseResult:
        return attempt(PrivateKeyBuilder.create, private_key, private_key_type)
