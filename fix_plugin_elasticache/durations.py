import operator
from datetime import timedelta
from functools import reduce
from typing import List

import parsy
from parsy import Parser, regex, string, whitespace

# The order is relevant: longest names first, so "min" is not parsed as "m" followed by "in"
# | output | all names | number of seconds |
time_units = [
    ("d", ["days", "day", "d"], 24 * 3600),
    ("h", ["hours", "hour", "h"], 3600),
    ("min", ["minutes", "minute", "min", "m"], 60),
    ("s", ["seconds", "second", "s"], 1),
]


def lexeme(p: Parser) -> Parser:
    return p << whitespace.optional()


float_p = lexeme(regex(r"\d+\.\d+").map(float))
integer_p = lexeme(regex(r"\d+").map(int))
time_unit_parser = reduce(
    lambda x, y: x | y, [lexeme(string(name)).result(seconds) for _, names, seconds in time_units for name in names]
)
time_unit_combination: Parser = reduce(lambda x, y: x | y, [lexeme(string(a)) for a in [",", "and"]])
single_duration_parser = parsy.seq((float_p | integer_p), time_unit_parser).combine(operator.mul)
duration_parser = (
    whitespace.optional() >> single_duration_parser.sep_by(time_unit_combination.optional(), min=1)
).map(lambda elems: sum(elems))


def parse_duration(ds: str) -> timedelta:
    """
    Parse a human readable duration like 20min, 1h30min or 10 seconds.
    """
    return timedelta(seconds=duration_parser.parse(ds))


def duration_str(duration: timedelta) -> str:
    seconds = duration.total_seconds()
    result: List[str] = []
    for unit, _, factor in time_units:
        if seconds >= factor:
            num = int(seconds / factor)
            seconds -= num * factor
            result.append(f"{num}{unit}")
    return "".join(result) or "0s"
