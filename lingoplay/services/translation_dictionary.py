"""
English -> Japanese phrase table, the last resort of the translation cascade.
"""

import re
from functools import lru_cache
from typing import List, Pattern, Tuple

EN_JA_DICTIONARY = {
    # Greetings
    'hello': 'こんにちは',
    'hi': 'こんにちは',
    'thank you': 'ありがとう',
    'thanks': 'ありがとう',
    'yes': 'はい',
    'no': 'いいえ',
    'please': 'お願いします',
    'sorry': 'すみません',
    'excuse me': 'すみません',

    # Adjectives
    'good': '良い',
    'bad': '悪い',
    'big': '大きい',
    'small': '小さい',
    'large': '大きい',
    'little': '小さい',
    'new': '新しい',
    'old': '古い',
    'young': '若い',
    'happy': '幸せな',
    'sad': '悲しい',
    'beautiful': '美しい',
    'ugly': '醜い',
    'fast': '速い',
    'slow': '遅い',
    'hot': '暑い',
    'cold': '寒い',
    'warm': '暖かい',
    'cool': '涼しい',

    # Time
    'today': '今日',
    'tomorrow': '明日',
    'yesterday': '昨日',
    'now': '今',
    'morning': '朝',
    'afternoon': '午後',
    'evening': '夕方',
    'night': '夜',
    'time': '時間',
    'hour': '時間',
    'minute': '分',
    'second': '秒',

    # Places
    'here': 'ここ',
    'there': 'そこ',
    'where': 'どこ',
    'home': '家',
    'school': '学校',
    'office': 'オフィス',
    'station': '駅',
    'airport': '空港',
    'hospital': '病院',
    'restaurant': 'レストラン',
    'shop': '店',
    'store': '店',

    # Question words
    'what': '何',
    'when': 'いつ',
    'who': '誰',
    'how': 'どのように',
    'why': 'なぜ',
    'which': 'どれ',

    # Verbs
    'go': '行く',
    'come': '来る',
    'see': '見る',
    'look': '見る',
    'watch': '見る',
    'listen': '聞く',
    'hear': '聞く',
    'speak': '話す',
    'talk': '話す',
    'say': '言う',
    'tell': '言う',
    'eat': '食べる',
    'drink': '飲む',
    'sleep': '寝る',
    'wake up': '起きる',
    'work': '働く',
    'study': '勉強する',
    'learn': '学ぶ',
    'teach': '教える',
    'help': '助ける',
    'love': '愛する',
    'like': '好き',
    'hate': '嫌い',
    'want': '欲しい',
    'need': '必要',
    'know': '知る',
    'understand': '理解する',
    'remember': '覚える',
    'forget': '忘れる',
}


@lru_cache(maxsize=1)
def _compiled_entries() -> List[Tuple[Pattern, str]]:
    # Longest phrases first so "thank you" wins over "you"
    keys = sorted(EN_JA_DICTIONARY, key=len, reverse=True)
    return [
        (re.compile(rf'\b{re.escape(english)}\b', re.IGNORECASE), EN_JA_DICTIONARY[english])
        for english in keys
    ]


def translate_with_dictionary(text: str) -> str:
    """
    Whole-word, case-insensitive substitution. Text without any English key
    comes back unchanged, which makes this idempotent on Japanese input.
    """
    translated = text
    for pattern, japanese in _compiled_entries():
        translated = pattern.sub(japanese, translated)
    return translated
