"""
ai/gemini_parser.py
-------------------
Uses Google Gemini 2.5 Flash to parse free-text subscription descriptions
into structured data, for messages that don't follow the
``name | amount | cycle`` command form.
"""

import json
from datetime import date

import google.generativeai as genai

from config import GEMINI_API_KEY
from models.subscription import SUBSCRIPTION_CATEGORIES
from utils.logger import get_logger

logger = get_logger(__name__)

# Configure the Gemini client once at module level
genai.configure(api_key=GEMINI_API_KEY)

_model = genai.GenerativeModel("gemini-2.5-flash")

_SUBSCRIPTION_PROMPT = """You are a personal finance assistant. Turn the user's message
describing a paid subscription into JSON.

Today's date: {today}

## Rules:

1. **service_name:** name of the service, e.g. "Netflix", "Spotify Family".
2. **amount:** the number charged per cycle.
3. **currency:** ISO code; "{default_currency}" when not mentioned.
4. **billing_cycle:** one of "One-Time", "Weekly", "Bi-weekly", "Monthly",
   "Quarterly", "Semiannual", "Yearly". "Monthly" when not mentioned.
5. **start_date:** date of the first (or next) charge, YYYY-MM-DD. Today when
   not mentioned. "on the 5th" → the next 5th of a month.
6. **category:** one of {categories}.

## Examples:
- "netflix 15.99 a month" → {{"service_name":"Netflix","amount":15.99,"currency":"{default_currency}","billing_cycle":"Monthly","start_date":"{today}","category":"Streaming"}}
- "chatgpt plus $20 monthly" → {{"service_name":"ChatGPT Plus","amount":20,"currency":"USD","billing_cycle":"Monthly","start_date":"{today}","category":"AI"}}
- "amazon prime 89.90 per year renews march 3" → {{"service_name":"Amazon Prime","amount":89.9,"currency":"{default_currency}","billing_cycle":"Yearly","start_date":"<next March 3>","category":"Shopping"}}

## Format:
Return JSON only, no explanation or markdown:
{{"service_name":"<name>","amount":<number>,"currency":"<ISO>","billing_cycle":"<cycle>","start_date":"YYYY-MM-DD","category":"<category>"}}

If it is unclear: {{"error":"unclear","question":"<short clarifying question>"}}
"""


def _strip_fences(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith("```"):
        raw = raw.split("\n", 1)[1] if "\n" in raw else raw[3:]
    if raw.endswith("```"):
        raw = raw[:-3]
    return raw.strip()


def parse_subscription(text: str, today: date, default_currency: str) -> dict:
    """
    Parse a natural-language subscription description.

    Args:
        text: e.g. "spotify 10.99 every month".
        today: Reference date for relative expressions.
        default_currency: Currency assumed when the text names none.

    Returns:
        Dict with service_name, amount, currency, billing_cycle, start_date,
        category; OR a dict with error and question if the text is unclear.
    """
    prompt = _SUBSCRIPTION_PROMPT.format(
        today=today.isoformat(),
        default_currency=default_currency,
        categories=", ".join(SUBSCRIPTION_CATEGORIES),
    )
    response = None
    try:
        response = _model.generate_content(
            [
                {"role": "user", "parts": [{"text": prompt}]},
                {"role": "user", "parts": [{"text": text}]},
            ],
            generation_config=genai.GenerationConfig(
                temperature=0.1,
                max_output_tokens=300,
            ),
        )
        result = json.loads(_strip_fences(response.text))
        logger.info(f"Gemini parsed subscription: {result}")
        return result

    except json.JSONDecodeError:
        logger.warning(f"Gemini returned non-JSON: {response.text if response else ''}")
        return {"error": "parse_failed", "question": "I didn't get that. Try: name | amount | cycle"}
    except Exception as e:
        logger.error(f"Gemini API error: {e}")
        return {"error": "api_error", "question": "Something went wrong while reading that. Please try again."}
