"""Style prompt table.

FILTERS is the order styles are shown in; every entry must be a key in
STYLE_PROMPTS. A generation request naming any other style is rejected.
"""

_LIKENESS = (
    "Preserve the subject's exact facial features, identity and natural "
    "skin texture. Make the subject look great and accurate to their "
    "original appearance."
)

STYLE_PROMPTS = {
    "Executive": (
        "Transform this photo into a dramatic black and white editorial "
        "portrait. Deep charcoal background with subtle gradation, split "
        "lighting with strong shadows and highlights, sharp focus on the "
        "eyes, dark textured jacket, high contrast and fine film grain. "
        + _LIKENESS
    ),
    "Lord": (
        "Transform this photo into a classical oil painting of an "
        "aristocrat in the style of an 18th century court portrait. Rich "
        "velvet garments, ornate collar, warm candle-lit palette, dark "
        "museum background with visible brushwork. " + _LIKENESS
    ),
    "Wes Anderson": (
        "Transform this photo into a perfectly symmetrical, centered "
        "portrait with a pastel color palette, flat frontal composition, "
        "whimsical vintage wardrobe and a meticulously styled set behind "
        "the subject. Soft even lighting. " + _LIKENESS
    ),
    "Urban": (
        "Transform this photo into a street-style portrait in a city at "
        "dusk. Neon reflections, shallow depth of field with bokeh city "
        "lights, casual streetwear, cinematic teal and orange grade. "
        + _LIKENESS
    ),
    "Runway": (
        "Transform this photo into a high-fashion runway shot. Bold "
        "designer outfit, confident expression, bright catwalk lighting, "
        "blurred audience and photographers in the background. "
        + _LIKENESS
    ),
    "LinkedIn": (
        "Transform this photo into a polished professional headshot. "
        "Chest-up framing, neutral light grey studio background, soft "
        "diffused lighting with gentle catchlights, business attire, "
        "approachable open smile, 85mm lens look. " + _LIKENESS
    ),
}

FILTERS = [
    "Executive",
    "Lord",
    "Wes Anderson",
    "Urban",
    "Runway",
    "LinkedIn",
]


def is_known_style(style):
    """True if `style` is a key of the prompt table."""
    return isinstance(style, str) and style in STYLE_PROMPTS


def get_prompt(style):
    """Return the prompt for a known style. Raises KeyError otherwise."""
    return STYLE_PROMPTS[style]
