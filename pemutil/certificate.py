import logging
import re
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from .builder import PrivateKeyBuilder
from .commons import CertificateException, PemException, decode_base64
from .encoding import EncodingValidator
from .keyspec import KeySpec
from .pem import PemReader

logger = logging.getLogger(__name__)


def _require_text(value: Optional[str], field_name: str):
    if not value or not value.strip():
        raise ValueError(f'{field_name}不能为空/{field_name} must not be empty')


def load_x509_certificate(certificate: str) -> x509.Certificate:
    """将PEM或Base64编码的DER证书转换为X.509证书对象"""
    try:
        if EncodingValidator.is_pem(certificate):
            items = [i for i in PemReader.parse(certificate) if i.is_certificate()]
            if not items:
                raise CertificateException('PEM数据中没有证书/No certificate found in PEM content.')
            der_data = items[0].content
        else:
            der_data = decode_base64(re.sub(r'\s', '', certificate))
    except CertificateException:
        raise
    except PemException as e:
        raise CertificateException('证书数据无法解码/Cannot decode certificate content.') from e

    try:
        return x509.load_der_x509_certificate(der_data)
    except ValueError as e:
        raise CertificateException('格式错误：不是有效的X.509证书/Invalid X.509 certificate.') from e


class Certificate:
    """证书、签发CA证书及序列号"""

    def __init__(self, serial_number: str, certificate: str, issuing_ca_certificate: str):
        self._serial_number = serial_number
        self._certificate = certificate
        self._issuing_ca_certificate = issuing_ca_certificate

    @staticmethod
    def of(serial_number: str, certificate: str, issuing_ca_certificate: str) -> 'Certificate':
        _require_text(serial_number, 'Serial number')
        _require_text(certificate, 'Certificate')
        _require_text(issuing_ca_certificate, 'Issuing CA certificate')
        return Certificate(serial_number, certificate, issuing_ca_certificate)

    @property
    def serial_number(self) -> str:
        return self._serial_number

    @property
    def certificate(self) -> str:
        return self._certificate

    @property
    def issuing_ca_certificate(self) -> str:
        return self._issuing_ca_certificate

    @property
    def x509_certificate(self) -> x509.Certificate:
        return load_x509_certificate(self._certificate)

    @property
    def x509_issuer_certificate(self) -> x509.Certificate:
        return load_x509_certificate(self._issuing_ca_certificate)

    def create_trust_store(self) -> bytes:
        """以PEM格式输出证书和签发CA证书，可用作CA证书文件"""
        return b''.join(c.public_bytes(serialization.Encoding.PEM)
                        for c in (self.x509_certificate, self.x509_issuer_certificate))


class CertificateBundle(Certificate):
    """证书及其私钥"""

    def __init__(self, serial_number: str, certificate: str, issuing_ca_certificate: str,
                 private_key: str, private_key_type: Optional[str] = None):
        super().__init__(serial_number, certificate, issuing_ca_certificate)
        self._private_key = private_key
        self._private_key_type = private_key_type or 'rsa'

    @staticmethod
    def of(serial_number: str, certificate: str, issuing_ca_certificate: str,
           private_key: str, private_key_type: Optional[str] = None) -> 'CertificateBundle':
        _require_text(serial_number, 'Serial number')
        _require_text(certificate, 'Certificate')
        _require_text(issuing_ca_certificate, 'Issuing CA certificate')
        _require_text(private_key, 'Private key')
        return CertificateBundle(serial_number, certificate, issuing_ca_certificate, private_key, private_key_type)

    @property
    def private_key(self) -> str:
        return self._private_key

    @property
    def private_key_type(self) -> str:
        return self._private_key_type

    @property
    def private_key_spec(self) -> KeySpec:
        return PrivateKeyBuilder.create(self._private_key, self._private_key_type)

    def create_key_store(self, key_alias: str, password: Optional[bytes] = None) -> bytes:
        """将私钥和证书链导出为PKCS#12格式

        :param key_alias: 私钥条目的别名
        :param password: 保护密码，None表示不加密
        :return: PKCS#12数据
        """
        _require_text(key_alias, 'Key alias')
        private_key = self.private_key_spec.to_private_key()
        if password:
            encryption = serialization.BestAvailableEncryption(password)
        else:
            encryption = serialization.NoEncryption()
        logger.debug('导出PKCS#12，别名%s', key_alias)
        return pkcs12.serialize_key_and_certificates(key_alias.encode('utf-8'), private_key,
                                                     self.x509_certificate, [self.x509_issuer_certificate],
                                                     encryption)
