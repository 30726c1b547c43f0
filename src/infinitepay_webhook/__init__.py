"""InfinitePay 결제 웹훅 수신 서버"""

__version__ = "1.0.0"
