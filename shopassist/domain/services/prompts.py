from shopassist.domain.services.constants import HIGHLIGHTS_MAX, HIGHLIGHTS_MIN

HIGHLIGHTS = "highlights"
REVIEW_SUMMARY = "review_summary"
PRODUCT_SUMMARY = "product_summary"


def system_prompt(kind: str) -> str:
    if kind == HIGHLIGHTS:
        return "You write concise product highlights for a shopping card. Return strict JSON only."
    if kind == REVIEW_SUMMARY:
        return "You summarize product reviews. Use only the review text. Return strict JSON only."
    if kind == PRODUCT_SUMMARY:
        return (
            "You summarize products for an ecommerce Buy-Now screen. "
            "Use ONLY the PDP text and review excerpts provided. "
            "If reviews are empty, say so and summarize the PDP only. Return strict JSON only."
        )
    raise ValueError(f"Unknown kind for system prompt: {kind}")


def user_task(kind: str) -> str:
    if kind == HIGHLIGHTS:
        return (
            f"Write {HIGHLIGHTS_MIN}-{HIGHLIGHTS_MAX} short bullets (strings) describing the product in TEXT.\n"
            "RULES:\n"
            "- Use ONLY provided TEXT\n"
            "- Each bullet under 15 words, no markdown\n\n"
            'OUTPUT FORMAT: {"highlights":["bullet","bullet","bullet"]}'
        )

    if kind == REVIEW_SUMMARY:
        return (
            "Summarize the REVIEWS.\n"
            "RULES:\n"
            "- reviewSummary: 2-3 sentences, factual\n"
            "- likes / dislikes: up to 3 short bullets each\n"
            "- sentimentPct: integers 0-100\n\n"
            'OUTPUT FORMAT: {"reviewSummary":"...","likes":["..."],"dislikes":["..."],'
            '"sentimentPct":{"positive":0,"neutral":0,"negative":0}}'
        )

    if kind == PRODUCT_SUMMARY:
        return (
            "Summarize the product from PDP_TEXT and REVIEWS.\n\n"
            'OUTPUT FORMAT: {"title":"...","summary":"...","pros":["..."],"cons":["..."],'
            '"sentiment":{"positive":0,"neutral":0,"negative":0},"sources":["url"]}'
        )

    raise ValueError(f"Unknown kind for user task: {kind}")
