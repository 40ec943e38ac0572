from __future__ import annotations

"""Shared vocabulary used across the keyword pipeline.

Stop lists, default seed queries, related-term suffixes and the story
category templates. Kept as plain data so the tokenizer, providers and
scorer read the same lists.
"""

# Function words plus boilerplate that video and news titles carry
STOP_WORDS_EN = [
    "the", "a", "an", "and", "or", "to", "of", "in", "on", "for", "with", "is", "are",
    "was", "were", "be", "from",
    "vs", "ver", "feat", "official", "mv", "teaser", "trailer", "full", "live", "episode",
    "ep", "part", "new", "update", "today", "breaking", "what", "why", "how", "when",
    "where", "who",
]

STOP_WORDS_KO = [
    "영상", "공식", "라이브", "뮤비", "예고", "티저", "하이라이트", "리뷰", "반응", "요약",
    "뉴스", "속보", "단독", "오늘", "지금", "최신", "화제", "사건", "사고", "인터뷰",
    "출연", "공개", "발표", "논란", "정리", "추측", "기자", "보도", "관련", "논의",
    "확인", "전문", "분석",
]

STOP_WORDS_EXTRA = {
    "ja": ["公式", "速報", "動画", "ニュース"],
}

# Broad coverage of everyday interest topics (romance and daily life included)
DEFAULT_SEEDS_KR = [
    "연애", "이별", "소개팅", "썸", "결혼", "동거", "카톡", "프사", "기념일", "선물",
    "직장", "회식", "상사", "퇴사", "연봉", "면접", "취업", "인턴", "부동산", "전세",
    "주식", "코인", "비트코인", "환율", "금리", "경제", "물가", "세금", "청약", "대출",
    "다이어트", "헬스", "건강", "피부", "수면", "우울", "스트레스", "습관", "루틴", "운동",
    "아이폰", "갤럭시", "유튜브", "넷플릭스", "드라마", "예능", "영화", "아이돌", "K팝", "콘서트",
    "축구", "야구", "경기", "게임", "스팀", "롤", "메이플", "여행", "맛집", "카페",
    "사건", "사고", "범죄", "정치", "논란", "학교", "교육", "자격증", "육아", "반려동물",
]

RELATED_SEARCH_SUFFIX = {"ko": "검색", "en": "search"}

RELATED_FALLBACK_SUFFIXES = {
    "ko": ["뜻", "이유", "후기", "사건"],
    "en": ["meaning", "why", "review", "news"],
}

# Category templates: trigger keywords, how well the topic converts into a
# personal-story short ("affinity" in [0, 1]) and the angle templates used
# to turn a trending term into a story prompt.
STORY_CATEGORIES = {
    "romance": {
        "keywords": ["연애", "이별", "소개팅", "썸", "결혼", "동거", "카톡", "프사", "기념일",
                     "선물", "환승", "잠수", "고백", "데이트", "남친", "여친", "date", "dating"],
        "affinity": 1.0,
        "angles": [
            "{term} 때문에 헤어진 썰",
            "{term} 한마디에 분위기 싸해진 썰",
            "나만 {term} 이해 안 되는 썰",
            "상대가 {term} 하길래 정 떨어진 썰",
            "친구가 {term} 했다가 레전드 된 썰",
        ],
    },
    "work": {
        "keywords": ["직장", "회식", "상사", "퇴사", "연봉", "면접", "취업", "인턴", "야근",
                     "회사", "사장", "알바", "job", "office"],
        "affinity": 0.85,
        "angles": [
            "회사에서 {term} 때문에 난리 난 썰",
            "상사가 {term} 얘기 꺼내서 당황한 썰",
            "면접에서 {term} 질문 받은 썰",
        ],
    },
    "daily": {
        "keywords": ["다이어트", "헬스", "건강", "피부", "수면", "우울", "스트레스", "습관",
                     "루틴", "운동", "여행", "맛집", "카페", "육아", "반려동물", "학교"],
        "affinity": 0.75,
        "angles": [
            "{term} 시작했다가 인생 바뀐 썰",
            "{term} 하다가 생긴 황당한 썰",
            "엄마가 {term} 알게 된 썰",
        ],
    },
    "money": {
        "keywords": ["주식", "코인", "비트코인", "환율", "금리", "경제", "물가", "세금", "청약",
                     "대출", "부동산", "전세", "월세", "stock", "crypto"],
        "affinity": 0.6,
        "angles": [
            "{term} 때문에 통장 털린 썰",
            "친구 말 듣고 {term} 했다가 후회한 썰",
            "{term} 덕분에 살아난 썰",
        ],
    },
    "entertainment": {
        "keywords": ["드라마", "예능", "영화", "아이돌", "k팝", "콘서트", "넷플릭스", "유튜브",
                     "게임", "배우", "가수", "movie", "drama", "kpop"],
        "affinity": 0.55,
        "angles": [
            "{term} 보다가 현타 온 썰",
            "{term} 얘기하다 싸운 썰",
            "나만 {term} 몰랐던 썰",
        ],
    },
    "tech": {
        "keywords": ["아이폰", "갤럭시", "인공지능", "iphone", "galaxy", "apple", "samsung"],
        "affinity": 0.45,
        "angles": [
            "{term} 바꿨다가 생긴 일",
            "부모님께 {term} 알려드린 썰",
            "{term} 때문에 데이터 날린 썰",
        ],
    },
    "sports": {
        "keywords": ["축구", "야구", "경기", "농구", "배구", "올림픽", "월드컵", "football", "baseball"],
        "affinity": 0.4,
        "angles": [
            "{term} 직관 갔다가 생긴 썰",
            "{term} 때문에 친구랑 내기한 썰",
        ],
    },
    "society": {
        "keywords": ["사건", "사고", "범죄", "정치", "논란", "교육", "선거", "재판", "police"],
        "affinity": 0.3,
        "angles": [
            "{term} 뉴스 보고 소름 돋은 썰",
            "{term} 현장에 있었던 썰",
        ],
    },
}

DEFAULT_CATEGORY = "general"
DEFAULT_CATEGORY_AFFINITY = 0.35
DEFAULT_ANGLES = [
    "{term} 때문에 헤어진 썰",
    "{term} 한마디에 분위기 싸해진 썰",
    "나만 {term} 이해 안 되는 썰",
    "상대가 {term} 하길래 정 떨어진 썰",
    "친구가 {term} 했다가 레전드 된 썰",
]

PLACEHOLDER_TERMS_EN = [
    "sample keyword", "placeholder topic", "example trend", "demo term", "test keyword",
]
