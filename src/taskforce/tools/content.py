"""Model-backed writing tools used by the content orchestrator."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from ..llm.registry import FallbackPolicy, ProviderRegistry
from .base import ModelTool, Tool, ToolParameter, ToolResult

LENGTH_GUIDES = {
    "short": "200-300 words",
    "medium": "400-600 words",
    "long": "800-1200 words",
}

TONE_GUIDES = {
    "formal": "Use formal language, avoid contractions, maintain professional distance.",
    "casual": "Use conversational language, feel free to use contractions and informal expressions.",
    "professional": "Balance professionalism with readability, clear and concise.",
    "technical": "Use technical terminology where appropriate, include detailed explanations.",
}

CONTENT_TYPE_GUIDES = {
    "article": "Write an engaging article with an introduction, body, and conclusion.",
    "report": "Write a structured report with clear sections and data-driven insights.",
    "summary": "Write a concise summary highlighting key points.",
    "documentation": "Write clear documentation with examples where appropriate.",
    "email": "Write a professional email with appropriate greeting and sign-off.",
}

LANGUAGE_NAMES = {
    "en": "English",
    "zh": "Chinese",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "ja": "Japanese",
    "ko": "Korean",
    "pt": "Portuguese",
    "ru": "Russian",
    "ar": "Arabic",
}

ENHANCEMENTS = {
    "grammar": "Fix any grammatical errors.",
    "clarity": "Improve clarity and readability.",
    "style": "Improve writing style and flow.",
    "conciseness": "Make the content more concise.",
    "expand": "Expand on key points with more detail.",
}


def _pick(value: Any, choices: Dict[str, str], default: str) -> str:
    return value if value in choices else default


class ContentGenerationTool(ModelTool):
    """Generate written content such as articles, reports, or documentation"""

    name = "generate_content"
    parameters = {
        "topic": ToolParameter("string", "The topic or subject to write about", required=True),
        "content_type": ToolParameter(
            "string",
            "Type of content: article, report, summary, documentation, email",
            enum=list(CONTENT_TYPE_GUIDES),
            default="article",
        ),
        "tone": ToolParameter(
            "string", "Writing tone: formal, casual, professional, technical", enum=list(TONE_GUIDES), default="professional"
        ),
        "length": ToolParameter("string", "Target length: short, medium, long", enum=list(LENGTH_GUIDES), default="medium"),
        "context": ToolParameter("string", "Additional context or background information"),
    }

    def run(self, params: Dict[str, Any]) -> ToolResult:
        topic = params["topic"]
        content_type = _pick(params.get("content_type"), CONTENT_TYPE_GUIDES, "article")
        tone = _pick(params.get("tone"), TONE_GUIDES, "professional")
        length = _pick(params.get("length"), LENGTH_GUIDES, "medium")
        system = (
            "You are a professional content writer.\n"
            f"{CONTENT_TYPE_GUIDES[content_type]}\n"
            f"Tone: {TONE_GUIDES[tone]}\n"
            f"Target length: {LENGTH_GUIDES[length]}\n\n"
            "Write well-structured, engaging content. Use markdown formatting where appropriate."
        )
        article = "an" if content_type[0] in "aeiou" else "a"
        user = f"Write {article} {content_type} about: {topic}"
        if params.get("context"):
            user = f"Context: {params['context']}\n\n{user}"
        content = self.complete(system, user, max_tokens=2000)
        return ToolResult.ok(
            {
                "content": content,
                "topic": topic,
                "content_type": content_type,
                "tone": tone,
                "length": length,
                "word_count": len(content.split()),
            }
        )


class ContentFormattingTool(ModelTool):
    """Format and structure existing content"""

    name = "format_content"
    parameters = {
        "content": ToolParameter("string", "The content to format", required=True),
        "format": ToolParameter(
            "string",
            "Output format: markdown, html, plain_text, json",
            enum=["markdown", "html", "plain_text", "json"],
            default="markdown",
        ),
        "structure": ToolParameter("string", "Structure to apply: headings, bullet_points, numbered_list, table"),
    }

    def run(self, params: Dict[str, Any]) -> ToolResult:
        content = params["content"]
        output_format = params.get("format") or "markdown"
        structure = params.get("structure")
        if structure:
            instructions = f"Apply {structure} structure to organize the content."
        else:
            instructions = "Maintain the existing structure but improve formatting."
        formatted = self.complete(
            "You are a content formatter. Reformat content into the specified format.\n"
            f"{instructions}\nOutput format: {output_format}\n\n"
            "Ensure proper formatting and structure. Do not change the meaning of the content.",
            f"Format this content:\n\n{content}",
            max_tokens=2000,
        )
        return ToolResult.ok(
            {
                "content": formatted,
                "format": output_format,
                "original_length": len(content),
                "formatted_length": len(formatted),
            }
        )


class TranslationTool(ModelTool):
    """Translate content to a different language"""

    name = "translate_content"
    parameters = {
        "content": ToolParameter("string", "The content to translate", required=True),
        "target_language": ToolParameter("string", "Target language code (e.g., en, zh, es, fr, de, ja)", required=True),
        "source_language": ToolParameter("string", "Source language code (auto-detect if not specified)"),
    }

    def run(self, params: Dict[str, Any]) -> ToolResult:
        content, target = params["content"], params["target_language"]
        source = params.get("source_language")
        user = content
        if source:
            user = f"Translate from {LANGUAGE_NAMES.get(source, source)}:\n\n{content}"
        translation = self.complete(
            f"You are a professional translator. Translate the content to {LANGUAGE_NAMES.get(target, target)}.\n"
            "Maintain the original tone, style, and formatting. "
            "Preserve any technical terms or proper nouns appropriately.",
            user,
            max_tokens=2000,
        )
        return ToolResult.ok(
            {"translation": translation, "target_language": target, "source_language": source or "auto-detected"}
        )


class ContentEnhancementTool(ModelTool):
    """Enhance content by improving clarity, grammar, and style"""

    name = "enhance_content"
    parameters = {
        "content": ToolParameter("string", "The content to enhance", required=True),
        "enhancements": ToolParameter(
            "array", "Types of enhancements: grammar, clarity, style, conciseness, expand", default=["grammar", "clarity"]
        ),
    }

    def run(self, params: Dict[str, Any]) -> ToolResult:
        content = params["content"]
        requested = [item for item in params.get("enhancements") or [] if item in ENHANCEMENTS]
        if not requested:
            return ToolResult.fail(f"Enhancements must be chosen from: {', '.join(ENHANCEMENTS)}")
        enhanced = self.complete(
            "You are an editor. Enhance the content with the following improvements:\n"
            f"{' '.join(ENHANCEMENTS[item] for item in requested)}\n\n"
            "Maintain the original meaning and intent. Return only the enhanced content.",
            content,
            max_tokens=2000,
        )
        return ToolResult.ok(
            {
                "content": enhanced,
                "enhancements_applied": requested,
                "original_length": len(content),
                "enhanced_length": len(enhanced),
            }
        )


class ReportGenerationTool(ModelTool):
    """Generate a structured report from data and insights"""

    name = "generate_report"
    parameters = {
        "title": ToolParameter("string", "Report title", required=True),
        "data": ToolParameter("object", "Data to include in the report", required=True),
        "sections": ToolParameter(
            "array", "Report sections to include", default=["summary", "findings", "recommendations"]
        ),
        "format": ToolParameter("string", "Report format: markdown, html", enum=["markdown", "html"], default="markdown"),
    }

    def run(self, params: Dict[str, Any]) -> ToolResult:
        title, data = params["title"], params["data"]
        sections = list(params.get("sections") or ["summary", "findings", "recommendations"])
        output_format = params.get("format") or "markdown"
        report = self.complete(
            "You are a report writer. Generate a professional, structured report.\n"
            f"Include the following sections: {', '.join(sections)}\n"
            f"Use {output_format} formatting. Make the report clear, data-driven, and actionable.",
            f'Generate a report titled "{title}" based on this data:\n\n{json.dumps(data, indent=2, default=str)}',
            max_tokens=3000,
        )
        return ToolResult.ok({"report": report, "title": title, "sections": sections, "format": output_format})


def content_tools(
    providers: ProviderRegistry,
    *,
    model: Optional[str] = None,
    fallback: Optional[FallbackPolicy] = None,
) -> List[Tool]:
    return [
        cls(providers, model=model, fallback=fallback)
        for cls in (
            ContentGenerationTool,
            ContentFormattingTool,
            TranslationTool,
            ContentEnhancementTool,
            ReportGenerationTool,
        )
    ]
