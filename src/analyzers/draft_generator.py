"""
Draft generator.
Builds the platform prompt from the curated excerpts and requests N
independent drafts. The round is all-or-nothing.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

from config import MAX_CONCURRENCY, MAX_VERSIONS, POST_MODEL
from src.analyzers.llm_client import complete
from src.errors import GenerationBatchFailed, UpstreamUnavailable, VersionCountOutOfBounds
from src.models import DraftSet, Platform

logger = logging.getLogger(__name__)

TWITTER_PREFIX = "Write a Twitter thread: "

# Long-form narrative post
LINKEDIN_GUIDELINES = """Write a LinkedIn-style post and follow these guidelines:

1. Objective & Audience:
- Your audience includes professionals, parents, educators, and individuals navigating the digital world.
- Provide content that resonates emotionally and intellectually, offering valuable insights rather than simply aiming for virality.

2. Source Integration:
- You are given a set of pre-selected excerpts at the end of this prompt.
- Seamlessly incorporate several of these excerpts into your post. Each excerpt should retain context and clearly explain its relevance.
- You may paraphrase the excerpts but maintain their core meaning.
- Use these excerpts to add credibility, spark thought, and anchor your message in real data or human experiences.
- Blend them well within the post so that the content stays homogeneous, cohesive and engaging.

3. Format & Structure:
- Begin with a compelling statement or statistic to grab attention.
- Follow with a short anecdote or relatable scenario to humanize the topic.
- Keep paragraphs short and easily readable.
- Use emojis sparingly to highlight key points or add warmth.

4. Content & Tone:
- Inspire readers to think more deeply about their digital behaviors and encourage positive action.
- Suggest practical steps or considerations.
- Maintain a conversational, empathetic tone suitable for a professional but relatable platform.

5. Engagement & Interaction:
- Conclude with a clear call-to-action, such as asking a question or inviting readers to share their own experiences.
- Mention that additional resources or links will be placed in the comments (do not include external links directly).
- Put the most attention-grabbing headline for the overall post on top of it.

6. Hashtags:
- Add up to five relevant hashtags at the end."""

# Numbered thread
TWITTER_GUIDELINES = """Write the post as a numbered Twitter thread and follow these guidelines:

1. Structure:
- Number every tweet as "1/", "2/", ... and keep each tweet under 280 characters.
- The first tweet is a hook: a striking statistic or statement from the excerpts.
- One idea per tweet; the last tweet closes with a question to the reader.

2. Source Integration:
- You are given a set of pre-selected excerpts at the end of this prompt.
- Build the thread on several of these excerpts; paraphrase if needed but keep their core meaning and name their source.

3. Tone:
- Conversational and empathetic, no marketing language.
- Do not include external links; say that resources are in the replies.

4. Hashtags:
- At most two hashtags, only in the last tweet."""


def render_excerpts(excerpts: list[str]) -> str:
    return "\n".join(f"- {excerpt}" for excerpt in excerpts)


def build_post_prompt(prompt: str, excerpts: list[str], platform: Platform) -> str:
    """Full instruction for one platform family with the excerpts embedded verbatim."""
    if platform is Platform.TWITTER:
        operator_prompt = f"{TWITTER_PREFIX}{prompt}"
        guidelines = TWITTER_GUIDELINES
    else:
        operator_prompt = prompt
        guidelines = LINKEDIN_GUIDELINES
    return (
        f"{operator_prompt}\n\n"
        f"{guidelines}\n\n"
        "Excerpts:\n"
        f"{render_excerpts(excerpts)}"
    )


def generate_drafts(
    prompt: str,
    excerpts: list[str],
    platform: Platform,
    version_count: int,
    max_versions: int = MAX_VERSIONS,
) -> DraftSet:
    """
    Request `version_count` drafts with the identical prompt.
    Raises GenerationBatchFailed if any call fails; no partial set is returned.
    """
    if not 1 <= version_count <= max_versions:
        raise VersionCountOutOfBounds(f"versions must be between 1 and {max_versions}, got {version_count}")

    final_prompt = build_post_prompt(prompt, excerpts, platform)
    logger.info(
        "[DRAFT] Generating %s %s drafts from %s excerpts",
        version_count,
        platform.value,
        len(excerpts),
    )

    with ThreadPoolExecutor(max_workers=min(version_count, MAX_CONCURRENCY)) as executor:
        futures = [executor.submit(complete, final_prompt, POST_MODEL) for _ in range(version_count)]
        drafts: list[str] = []
        failures: list[str] = []
        for idx, future in enumerate(futures):
            try:
                drafts.append(future.result())
            except UpstreamUnavailable as e:
                failures.append(f"version {idx + 1}: {e}")

    if failures:
        logger.error("[DRAFT] Batch failed (%s/%s calls): %s", len(failures), version_count, "; ".join(failures))
        raise GenerationBatchFailed(f"{len(failures)} of {version_count} draft generations failed")

    return DraftSet(platform=platform, drafts=drafts)
