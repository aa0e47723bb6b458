"""Prompt templates for search-result classification."""

from bizfinder.extraction.schemas import SearchHit

NOT_SPECIFIED = "Not specified"

ANALYSIS_RULES = """Analysis Rules:
- Company websites typically have business names in titles, clear service descriptions, and professional domains
- Directories/aggregators often have multiple company listings, generic titles like "Best [Service] in [Location]" or "Top 10 ..."
- Forums, review sites and social networks are NOT company websites
- Forms/lead generation pages usually have URLs with "contact", "quote", "request" or similar patterns
- Extract company names from titles, avoiding generic words like "Best", "Top", "Leading"
- Extract geographic information (city, state/province, country) from titles, snippets, or URLs when available
- For business categories, be specific and descriptive:
  * Instead of "Fiberglass", use "Fiberglass Installation" or "Fiberglass Supply"
  * Instead of "Drywall", use "Drywall Installation" or "Drywall Contracting"
  * Instead of "Spray Foam", use "Spray Foam Insulation" or "Spray Foam Application"
  * Include service type (Installation, Supply, Contracting, Repair, etc.)
  * Separate multiple categories as individual items in the array
- Return base URLs without protocols (e.g., "example.com" not "https://example.com")
- Assign confidence scores between 0 and 1 based on clarity of business identification"""

RETRY_REMINDER = (
    "IMPORTANT: Your previous response was invalid. Please ensure you return ONLY valid JSON "
    "with the exact structure specified above. Do not include any explanatory text, "
    "markdown formatting, or code fences."
)


def _format_hit(hit: SearchHit, number: int | None = None) -> str:
    prefix = f"{number}. " if number is not None else ""
    lines = [f'{prefix}Title: "{hit.title}"', f"   URL: {hit.link}"]
    if hit.snippet:
        lines.append(f'   Snippet: "{hit.snippet}"')
    return "\n".join(lines)


def build_batch_prompt(
    hits: list[SearchHit],
    industry: str | None = None,
    location: str | None = None,
) -> str:
    """Build one prompt classifying every hit at once."""
    results_text = "\n\n".join(_format_hit(hit, index + 1) for index, hit in enumerate(hits))

    return f"""You are a business intelligence analyst specializing in analyzing Google search results to identify company websites and extract business information.

Your task is to analyze the provided Google search results and determine:
1. Which URLs are actual company websites (vs directories, forums, or aggregators)
2. Extract the business name from each company website
3. Extract geographic information (city, state/province, country) when available
4. Identify and categorize the business services/industries in detail
5. Return the base URL (domain) for each company website

Industry Context: {industry or NOT_SPECIFIED}
Location Context: {location or NOT_SPECIFIED}

Google Search Results:
{results_text}

{ANALYSIS_RULES}

Return ONLY valid JSON with this exact structure:
{{
  "businesses": [
    {{
      "website": "example.com",
      "companyName": "Example Company Name",
      "isCompanyWebsite": true,
      "confidence": 0.9,
      "extractedFrom": "title",
      "city": "City Name",
      "stateProvince": "State/Province Name",
      "country": "Country Name",
      "categories": ["Specific Service Type 1", "Specific Service Type 2"],
      "rawData": {{
        "title": "Original Title",
        "link": "Original URL",
        "snippet": "Original snippet if available"
      }}
    }}
  ],
  "summary": {{
    "totalResults": 10,
    "companyWebsites": 7,
    "directories": 2,
    "forms": 1,
    "extractionQuality": 0.85
  }}
}}

Focus on accuracy and only include results where you're confident about the classification."""


def build_result_prompt(
    hit: SearchHit,
    industry: str | None = None,
    location: str | None = None,
) -> str:
    """Build the prompt classifying a single hit."""
    return f"""You are a business intelligence analyst. Classify ONE Google search result: decide whether it is an actual company website (vs a directory, forum, aggregator or lead-generation page) and extract the business information.

Industry Context: {industry or NOT_SPECIFIED}
Location Context: {location or NOT_SPECIFIED}

Search Result:
{_format_hit(hit)}

{ANALYSIS_RULES}

Return ONLY valid JSON with this exact structure (no markdown, no explanation):
{{
  "website": "example.com",
  "companyName": "Example Company Name",
  "isCompanyWebsite": true,
  "confidence": 0.9,
  "extractedFrom": "title",
  "city": "City Name or null",
  "stateProvince": "State/Province Name or null",
  "country": "Country Name or null",
  "categories": ["Specific Service Type 1", "Specific Service Type 2"]
}}

If the result is not a company website, still return the object with "isCompanyWebsite": false."""
