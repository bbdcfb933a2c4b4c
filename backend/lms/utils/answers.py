"""Answer mapping conversion at the storage/serialization boundary.

Submitted answers travel as `{"<question id>": "<answer>"}`. Inside the
grader they are handled as `{question_id: answer}` with integer keys.
"""

import re
from typing import Dict, Mapping

from ..errors import ValidationError

QUESTION_KEY_RE = re.compile(r'^[1-9][0-9]*$')


def parse_answer_mapping(raw: Mapping) -> Dict[int, str]:
    """Convert a string-keyed answer mapping into integer question ids.

    Raises `ValidationError` for keys that are not canonical decimal ids
    and for values that are not strings.
    """
    if not isinstance(raw, Mapping):
        raise ValidationError('answers must be a mapping')
    parsed: Dict[int, str] = {}
    for key, value in raw.items():
        if not isinstance(key, str) or not QUESTION_KEY_RE.match(key):
            raise ValidationError(f'invalid question id key: {key!r}')
        if not isinstance(value, str):
            raise ValidationError(f'answer for question {key} must be a string')
        parsed[int(key)] = value
    return parsed


def answers_to_wire(answers: Mapping[int, str]) -> Dict[str, str]:
    """Render an integer-keyed mapping with string keys for storage."""
    return {str(qid): value for qid, value in answers.items()}
