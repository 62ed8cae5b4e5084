"""
Prompt templates for the vehicle analysis model.

The snapshot section of the user prompt is built from the same ordered field
set as the cache key, so two requests that share a cache entry always sent
the model the same vehicle description.
"""

import json

from straightshot.utils.fingerprint import SnapshotLike, analysis_fields

SYSTEM_PROMPT = (
    "You analyze used car listings and return a concise, structured JSON response for a buyer. "
    "Be specific to the exact year/make/model and avoid generic advice. "
    "Common issues must be relevant to that year/generation (no broad make-wide issues). "
    "If data is missing, make conservative assumptions and mention it in notes. "
    "Return only valid JSON."
)

RESPONSE_KEYS = [
    "summary (string),",
    "final_verdict (string, e.g. \"Buy\", \"Conditional buy\", \"Walk away\"),",
    "common_issues (array of {issue, severity, typical_failure_mileage, estimated_cost_diy, estimated_cost_shop}),",
    "expected_maintenance_near_term (array of {item, typical_mileage_range, why_it_matters, estimated_cost_diy, estimated_cost_shop}),",
    "wear_items (array of {item, typical_mileage_range, why_it_matters, estimated_cost_diy, estimated_cost_shop}),",
    "upsides (array of strings),",
    "inspection_checklist (array of strings),",
    "buyer_questions (array of strings),",
    "deal_breakers (array of strings),",
    "market_value_estimate (string, e.g. \"$18,000–$21,000\"),",
    "price_opinion (string),",
    "year_model_reputation (string),",
    "remaining_lifespan_estimate (string),",
    "daily_driver_vs_project (string),",
    "mechanical_skill_required (string),",
    "overall_score (number 0-100),",
    "risk_flags (array of strings),",
    "tags (array of emoji-labeled short strings),",
    "confidence (number 0-1),",
    "notes (string, optional).",
]

GUIDANCE = [
    "Overall score guidance (0-100):",
    "0-14 = ❌ No, 15-34 = ⚠️ Risky, 35-54 = ⚖️ Fair, 55-71 = 👍 Good, 72-87 = 💎 Great, 88-100 = 🚀 Steal.",
    "Use price vs mileage, known issues, title status, and missing info to pick a score.",
    "The final verdict must agree with the score band.",
    "Tag examples: 🔧 Money pit in disguise, 🚨 Fixer-upper (emphasis on fixer), ⚠️ Budget for repairs, "
    "✅ Mechanically reasonable, 💪 Known for going forever, 🏆 Buy it and forget about it.",
    "If there is a strong case to negotiate, add one extra buyer question prefixed with \"$\" that suggests "
    "a reasonable offer based on needed repairs or red flags.",
    "Do not replace other questions. If referencing issues not stated by the seller, explicitly say they are "
    "common for this year/model and make the question conditional (e.g., \"If you know about X...\").",
    "Inspection checks must be DIY-friendly (what an average buyer can do on-site without tools): test drive "
    "behavior, listen for noises, check lights, inspect fluids, check for leaks, check tires/brakes visually, "
    "verify warning lights.",
    "Buyer questions must be specific to the seller's description; avoid generic questions already answered.",
    "Do not ask about clutch replacement or major repairs unless the seller text indicates a problem or heavy wear.",
    "If electrical issues are mentioned, ask targeted follow-ups (e.g., which codes, how often, any diagnostics done).",
    "Common issues should be listed only if they are explicitly mentioned by the seller or are well-known for "
    "that exact year/generation. If unsure, omit.",
    "Negotiation questions must cite seller-provided issues or clearly state they are common for this "
    "year/model with typical mileage context.",
    "If the seller did not mention the issue, the negotiation question must include the context in the "
    "question itself (e.g., \"On a 2012 Pilot, transmission issues can show up around 140k+ miles; if that "
    "applies here, would you consider...\").",
]


def build_user_prompt(snapshot: SnapshotLike) -> str:
    """Vehicle snapshot plus the response contract."""
    lines = [
        "Vehicle snapshot:",
        json.dumps(analysis_fields(snapshot), indent=2, ensure_ascii=False),
        "",
        "Return JSON with keys:",
        *RESPONSE_KEYS,
        "",
        *GUIDANCE,
    ]
    return "\n".join(lines)
