"""
XML tag parser for Claude responses

Generators ask the model to answer with one tag per file:

    <file path="CustomerForm.tsx">...</file>
"""

from typing import Dict, List
import re

from bizforge.core.logging_config import logger


CODE_FENCE = re.compile(r"^```[\w+-]*\n(.*?)\n?```$", re.DOTALL)


class PlainTextParser:
    """Parse XML-tagged responses from Claude"""

    @staticmethod
    def parse_xml_tags(response: str, tag_name: str) -> List[Dict[str, str]]:
        """
        Parse XML-style tags from response

        Args:
            response: Response text from Claude
            tag_name: Tag name to extract (e.g., 'file')

        Returns:
            List of dicts with tag content and attributes
        """
        results = []

        # Matches: <tag attr="value">content</tag>
        pattern = rf'<{tag_name}([^>]*)>(.*?)</{tag_name}>'
        for match in re.finditer(pattern, response, re.DOTALL):
            attrs_str = match.group(1).strip()
            content = match.group(2).strip()

            attrs = {}
            if attrs_str:
                for attr_match in re.finditer(r'(\w+)="([^"]*)"', attrs_str):
                    attrs[attr_match.group(1)] = attr_match.group(2)

            results.append({
                'content': content,
                **attrs
            })

        return results

    @staticmethod
    def parse_file_blocks(response: str) -> Dict[str, str]:
        """
        Collect <file path="..."> blocks into {path: content}.

        Markdown code fences around the content are removed. Blocks without
        a path are skipped; a repeated path keeps the last block.
        """
        files: Dict[str, str] = {}
        for block in PlainTextParser.parse_xml_tags(response, 'file'):
            path = block.get('path', '').strip()
            if not path:
                logger.debug("[Parser] Skipping <file> block without path")
                continue
            content = block['content']
            fenced = CODE_FENCE.match(content)
            if fenced:
                content = fenced.group(1)
            files[path] = content if content.endswith("\n") else content + "\n"
        return files
