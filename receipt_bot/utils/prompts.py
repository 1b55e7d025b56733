"""Default prompt templates for receipt transcription.

Keeping prompts in a central location makes it easier to iterate on
their content and ensure consistency between the prompt and the JSON
schema enforced in ``receipt_bot.services.extraction_service``.
"""

from __future__ import annotations

from textwrap import dedent


def get_transcription_prompt(categories: str) -> str:
    """Return the system prompt used to transcribe a receipt photo.

    ``categories`` is the comma separated ``Name (description)`` list
    from :meth:`CategoryDirectory.for_prompt`; the model is asked to pick
    one of them for every product. The user's comment, when present, is
    sent as a separate input and takes priority over what the model reads
    from the image.
    """
    return dedent(
        f"""
        Extract essential data from a receipt while prioritizing the user's
        comment related to each item. Consider store names and product
        descriptions to infer categories if required.

        # Key Instructions
        1. Prioritize interpreting the user's comment for each receipt item.
        2. Identify the store name and infer product categories if not explicit.
        3. Extract the total amount spent.
        4. Report every price as a positive number in the receipt currency.
           Fold discounts into the price of the product they apply to.

        # Notes
        - Use exactly one category name per product, chosen from: {categories}
        """
    ).strip()
