# ABOUTME: Prompt templates for Gemini news generation.
# ABOUTME: The news prompt demands a bare JSON array so the response can be parsed directly.

NEWS_SYSTEM_PROMPT = """You are a news desk editor preparing short bulletins for a Telegram channel.
You only answer with data, never with commentary. Your answer is always a JSON array and nothing else."""

NEWS_PROMPT = """List exactly {count} of the most important current news stories about: {topic}.

Write every story in {language}.

Answer with a JSON array of exactly {count} objects. Each object has these fields:
- "title": a short headline (one sentence, no trailing period required)
- "content": the full story in two to four short paragraphs
- "link": the URL of a reliable source for the story, or null if you are not sure

Rules:
- Return ONLY the JSON array. No introduction, no explanation, no markdown headings.
- Do not repeat the same story twice.
- Prefer stories from the last 24 hours.

Example of the expected shape:
[
  {{"title": "Headline", "content": "Story text.", "link": "https://example.com/story"}}
]
"""


def build_news_prompt(count: int, topic: str, language: str) -> str:
    """Render the news request for the given batch size."""
    return NEWS_PROMPT.format(count=count, topic=topic, language=language)
