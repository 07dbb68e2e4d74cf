"""Code extraction utilities for parsing p5.js code from LLM responses.

Model output may wrap code in a markdown fence, return bare code, or return
prose only. Extraction is plain text scanning:

1. The first fenced block (optionally tagged ``javascript``/``js``) wins.
2. Otherwise, if any line mentions a p5.js keyword, the whole text is code.
3. Otherwise there is no code.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional


@dataclass
class ExtractedCode:
    """Result of scanning a response for code.

    Attributes:
        code: Extracted code, or None when nothing looks like code
        explanation: Response text with fenced code removed
    """
    code: Optional[str]
    explanation: Optional[str]


class CodeExtractor:
    """Extract p5.js code from LLM responses.

    Example:
        extractor = CodeExtractor()
        result = extractor.extract('''Here you go:
        ```javascript
        function setup() { createCanvas(400, 400); }
        ```
        ''')
        # result.code == "function setup() { createCanvas(400, 400); }"
    """

    CODE_BLOCK_PATTERN = re.compile(r"```(?:javascript|js)?\s*([\s\S]*?)```")
    CODE_KEYWORDS = ("function", "let", "const", "var", "setup", "draw", "createCanvas")
    P5_MARKERS = ("function setup", "function draw")
    FALLBACK_EXPLANATION = "生成的p5.js动画代码"

    def extract(self, text: str) -> ExtractedCode:
        """Split a response into code and explanation."""
        match = self.CODE_BLOCK_PATTERN.search(text)
        if match:
            code = match.group(1).strip()
            explanation = self.CODE_BLOCK_PATTERN.sub("", text).strip()
            return ExtractedCode(code=code or None, explanation=explanation or None)

        if self.looks_like_code(text):
            return ExtractedCode(code=text.strip(), explanation=self.FALLBACK_EXPLANATION)

        return ExtractedCode(code=None, explanation=text or None)

    def extract_code(self, text: str) -> Optional[str]:
        return self.extract(text).code

    def looks_like_code(self, text: str) -> bool:
        """Keyword heuristic: any line containing a p5.js keyword."""
        lines = text.strip().split("\n")
        return any(keyword in line for line in lines for keyword in self.CODE_KEYWORDS)

    def contains_p5_code(self, text: str) -> bool:
        """Stricter gate: the text defines ``setup`` or ``draw``."""
        return any(marker in text for marker in self.P5_MARKERS)


_default_extractor = CodeExtractor()


def extract_code(text: str) -> Optional[str]:
    return _default_extractor.extract_code(text)


def contains_p5_code(text: str) -> bool:
    return _default_extractor.contains_p5_code(text)
