# custom exception 정의 및 관리
# 매칭 실패(NoMatch)는 예외가 아니라 None으로 표현


class GilfinderException(Exception):  # 예외 구조 정의
    def __init__(self, message: str, code: str = "INTERNAL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)


class UpstreamUnavailableException(GilfinderException):
    """외부 API(카카오, OPINET, 공공데이터) 호출 실패 => 항상 비치명적"""

    def __init__(self, message: str = "외부 API를 사용할 수 없습니다", source: str = ""):
        self.source = source
        super().__init__(message, code="UPSTREAM_UNAVAILABLE")


class ConfigurationMissingException(GilfinderException):
    def __init__(self, message: str = "필수 설정값이 없습니다"):
        super().__init__(message, code="CONFIGURATION_MISSING")


class MalformedInputException(GilfinderException):
    def __init__(self, message: str = "유효하지 않은 입력입니다"):
        super().__init__(message, code="MALFORMED_INPUT")
