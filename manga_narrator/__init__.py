"""
Manga Narrator
캡처한 만화 페이지를 Gemini 비전으로 분석하고 감정이 담긴 음성으로 읽어줍니다.
"""
__version__ = "1.0.0"
