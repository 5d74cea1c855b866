"""
지역 정의 테이블

- OPINET_GRID_POINTS: 전국 주유소 가격 수집용 조회 지점 (이름, 위도, 경도)
  고속도로 축 + 주요 도시 + 내륙 보강 지점, 각 지점 반경 7km 조회
- EV_ZCODES: 한국환경공단 충전소 API 지역코드
"""

from typing import Dict, List, Optional, Tuple

OPINET_SEARCH_RADIUS_M = 7000

OPINET_GRID_POINTS: List[Tuple[str, float, float]] = [
    ("서울", 37.566, 126.978),
    ("인천", 37.456, 126.705),
    ("수원", 37.263, 127.029),
    ("성남", 37.390, 127.100),
    ("의정부", 37.750, 127.040),
    ("안산", 37.325, 126.831),
    ("하남", 37.500, 127.140),
    ("평택", 37.095, 127.067),
    ("천안", 36.820, 127.114),
    ("세종", 36.635, 127.230),
    ("대전", 36.351, 127.385),
    ("옥천", 36.107, 127.488),
    ("김천", 35.870, 128.030),
    ("대구", 35.872, 128.602),
    ("경산", 35.640, 128.750),
    ("울산", 35.540, 129.030),
    ("울산동", 35.540, 129.350),
    ("부산", 35.180, 129.076),
    ("부산남", 35.100, 129.030),
    ("양산", 35.230, 128.880),
    ("아산", 36.770, 126.930),
    ("홍성", 36.570, 126.860),
    ("보령", 36.330, 126.860),
    ("군산", 35.970, 126.720),
    ("김제", 35.820, 126.890),
    ("함평", 35.500, 126.720),
    ("목포", 34.812, 126.393),
    ("논산", 36.080, 127.150),
    ("전주", 35.820, 127.148),
    ("정읍", 35.600, 127.050),
    ("광주", 35.160, 126.920),
    ("광주남", 35.060, 126.870),
    ("순천", 34.950, 127.490),
    ("여수", 34.740, 127.736),
    ("용인", 37.060, 127.300),
    ("충주", 36.980, 127.930),
    ("음성", 36.830, 127.680),
    ("청주", 36.640, 127.490),
    ("원주", 37.338, 127.945),
    ("횡성", 37.350, 128.350),
    ("평창", 37.440, 128.720),
    ("강릉", 37.752, 128.876),
    ("춘천", 37.880, 127.730),
    ("안동", 36.570, 128.730),
    ("구미", 35.970, 128.380),
    ("포항", 36.040, 129.360),
    ("경주", 35.860, 129.220),
    ("창원", 35.075, 128.580),
    ("김해", 35.090, 128.830),
    ("진주", 35.000, 128.060),
    ("하동", 34.950, 127.800),
    ("사천", 35.180, 128.070),
    ("동해", 37.480, 129.165),
    ("삼척", 37.170, 129.070),
    ("속초", 38.210, 128.590),
    ("계룡", 36.320, 127.120),
    ("남원", 35.350, 127.150),
    ("문경", 36.810, 128.260),
    ("창녕", 35.490, 128.490),
    ("상주", 36.430, 128.160),
    ("무주", 35.820, 127.700),
    ("제천", 37.180, 128.210),
    ("서산", 36.990, 126.660),
    ("기장", 35.310, 129.010),
    ("태안", 36.780, 126.450),
    ("익산", 35.970, 126.980),
    ("해남", 34.570, 126.570),
    ("제주", 33.500, 126.530),
    ("서귀포", 33.250, 126.250),
    ("이천", 37.200, 127.430),
    ("여주", 37.100, 127.700),
    ("영주", 36.350, 128.690),
    ("영천", 36.190, 128.880),
    ("밀양", 35.230, 128.600),
    ("서천", 36.440, 126.620),
    ("담양", 35.400, 126.950),
    ("안양", 37.290, 126.980),
    ("부천", 37.478, 126.877),
    ("남양주", 37.650, 127.150),
    ("오산", 37.206, 127.077),
    ("분당", 37.340, 127.125),
    ("구리", 37.450, 127.127),
    ("노원", 37.640, 127.025),
    ("가평", 37.860, 127.200),
    ("포천", 37.740, 127.047),
    ("파주", 37.758, 126.780),
    ("고양", 37.630, 126.830),
    ("광명", 37.290, 126.850),
    ("김포", 37.486, 126.656),
    ("군포", 37.275, 127.009),
    ("화성", 37.155, 127.090),
    ("안성", 37.000, 127.270),
    ("용인남", 37.140, 127.260),
    ("광주", 37.370, 127.220),
    ("하남동", 37.440, 127.294),
    ("시흥", 37.200, 126.850),
    ("당진", 36.460, 126.660),
    ("예산", 36.270, 126.990),
    ("청양", 36.240, 126.800),
    ("공주", 36.275, 127.120),
    ("부여", 36.158, 127.250),
    ("예천", 36.547, 126.660),
    ("홍성동", 36.600, 127.000),
    ("서천남", 36.105, 126.613),
    ("증평", 36.970, 127.490),
    ("진천", 36.790, 127.440),
    ("청주서", 36.580, 127.290),
    ("청주동", 36.640, 127.650),
    ("보은", 36.470, 127.670),
    ("영동", 36.220, 127.520),
    ("단양", 36.370, 128.410),
    ("충주북", 36.620, 128.200),
    ("제천동", 36.990, 128.190),
    ("괴산", 36.800, 128.050),
    ("완주", 35.720, 127.100),
    ("진안", 35.650, 127.250),
    ("장수", 35.450, 127.380),
    ("익산동", 35.950, 127.150),
    ("전주동", 35.820, 127.400),
    ("고창", 35.570, 126.856),
    ("영광", 35.420, 126.700),
    ("정읍서", 35.680, 126.780),
    ("장성", 35.250, 126.910),
    ("영암", 35.030, 126.710),
    ("나주", 35.060, 126.980),
    ("화순", 35.000, 127.090),
    ("보성", 34.940, 127.270),
    ("고흥", 34.760, 127.150),
    ("여수북", 34.610, 127.280),
    ("무안", 34.830, 126.910),
    ("함평북", 35.070, 126.710),
    ("강진", 34.610, 126.750),
    ("완도", 34.500, 126.770),
    ("신안", 34.730, 126.480),
    ("안동동", 36.740, 128.890),
    ("예천동", 36.470, 128.890),
    ("영덕", 36.570, 129.110),
    ("포항남", 36.420, 129.360),
    ("봉화", 36.770, 128.620),
    ("영양", 36.570, 129.340),
    ("영주동", 36.660, 128.450),
    ("예천서", 36.350, 128.480),
    ("칠곡", 36.010, 128.690),
    ("의성", 36.230, 128.340),
    ("청송", 36.420, 128.750),
    ("경주서", 36.130, 129.060),
    ("창녕동", 35.230, 128.300),
    ("성주", 35.680, 128.320),
    ("고령", 35.680, 128.110),
    ("합천", 35.510, 128.210),
    ("산청", 35.250, 127.910),
    ("함양", 35.420, 127.740),
    ("거창", 35.650, 127.910),
    ("양산동", 35.470, 128.750),
    ("창녕서", 35.330, 128.430),
    ("창원북", 35.180, 128.400),
    ("함안", 35.050, 128.270),
    ("하동동", 35.170, 127.730),
    ("남해", 34.850, 127.950),
    ("평창동", 37.380, 128.680),
    ("영월", 37.270, 128.460),
    ("정선", 37.380, 128.660),
    ("태백", 37.164, 128.989),
    ("삼척북", 37.270, 129.180),
    ("강릉남", 37.550, 128.870),
    ("홍천", 37.686, 128.720),
    ("횡성서", 37.490, 127.730),
    ("양양", 38.070, 128.460),
    ("인제", 38.208, 128.350),
    ("춘천남", 37.900, 127.530),
]

EV_ZCODES: List[Tuple[str, str]] = [
    ("11", "서울"),
    ("26", "부산"),
    ("27", "대구"),
    ("28", "인천"),
    ("29", "광주"),
    ("30", "대전"),
    ("31", "울산"),
    ("36", "세종"),
    ("41", "경기"),
    ("42", "강원"),
    ("43", "충북"),
    ("44", "충남"),
    ("45", "전북"),
    ("46", "전남"),
    ("47", "경북"),
    ("48", "경남"),
    ("50", "제주"),
]

# 주소 접두어 => 지역코드 (긴 접두어 우선 검사)
_ADDRESS_PREFIX_TO_ZCODE: Dict[str, str] = {
    "충청북": "43",
    "충청남": "44",
    "전라북": "45",
    "전라남": "46",
    "경상북": "47",
    "경상남": "48",
    "서울": "11",
    "부산": "26",
    "대구": "27",
    "인천": "28",
    "광주": "29",
    "대전": "30",
    "울산": "31",
    "세종": "36",
    "경기": "41",
    "강원": "42",
    "충북": "43",
    "충남": "44",
    "전북": "45",
    "전남": "46",
    "경북": "47",
    "경남": "48",
    "제주": "50",
}


def zcode_from_address(address: str) -> Optional[str]:
    """주소 문자열에서 지역코드 추출, 없으면 None"""
    if not address:
        return None
    head = address.strip().split(" ")[0]
    for prefix, code in _ADDRESS_PREFIX_TO_ZCODE.items():
        if head.startswith(prefix):
            return code
    return None
