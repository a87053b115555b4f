"""
Prompt builders for PRD, task and project-description generation.
"""
from typing import Any, Dict, Optional

PRD_MAX_CHARS = 8000
TEST_PROMPT = 'Say "OK" if you can read this message.'

PRD_SECTIONS = """
Generate a detailed PRD with the following sections:

# Project Requirements Document

## 1. Executive Summary
Brief overview of the project and its goals.

## 2. Project Overview
Detailed description of what we're building and why.

## 3. Target Audience & User Personas
Who will use this and what are their needs?

## 4. Core Features & Functionality
List all features with detailed descriptions:
- Feature 1: Description
- Feature 2: Description
(etc.)

## 5. Technical Requirements
- Frontend: Technologies and frameworks
- Backend: Server-side requirements
- Database: Data storage needs
- Third-party Integrations: External services
- Hosting & Deployment: Infrastructure requirements

## 6. Design Specifications
- Visual Style: Description of look and feel
- Color Scheme: Primary and secondary colors
- Typography: Font choices and hierarchy
- Layout: Page structure and navigation
- Responsive Design: Mobile, tablet, desktop breakpoints

## 7. Content Requirements
What content needs to be created or provided?

## 8. Timeline & Milestones
Estimated phases and key deliverables.

## 9. Success Metrics
How will we measure project success?

## 10. Assumptions & Constraints
Any limitations or assumptions made.

Format the PRD in clean Markdown with clear headings, bullet points, and organized sections.
"""


def format_question_answers(question_answers: Optional[Dict[str, Any]]) -> str:
    """Render onboarding answers as `- key with spaces: value` lines."""
    lines = []
    for key, value in (question_answers or {}).items():
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(v) for v in value)
        lines.append(f"- {key.replace('_', ' ')}: {value}")
    return "\n".join(lines)


def build_prd_prompt(service_name: str, description: str, question_answers: Optional[Dict[str, Any]] = None) -> str:
    requirements = ""
    if question_answers:
        requirements = f"\nClient Requirements:\n{format_question_answers(question_answers)}\n"

    return f"""
Create a comprehensive Project Requirements Document (PRD) for a web development project.

Service Type: {service_name}
Project Description: {description}
{requirements}{PRD_SECTIONS}"""


def build_tasks_prompt(prd: str) -> str:
    return f"""
Based on this PRD, generate 15-25 specific, actionable development tasks.

PRD:
{prd[:PRD_MAX_CHARS]}

For each task, provide:
- title: Clear, concise task name (under 80 characters)
- description: 2-3 sentences explaining what needs to be done
- section: One of [Frontend, Backend, Database, Design, Testing, DevOps, Documentation]
- priority: One of [high, medium, low]
- estimatedHours: Realistic time estimate (1-40 hours)
- dependencies: Array of task indices that must be completed first (e.g., [0, 2])
- order: Sequential order number

**IMPORTANT: Return ONLY valid JSON array, no markdown formatting, no code blocks.**

Example format:
[
  {{
    "title": "Setup project structure",
    "description": "Initialize the project, configure routing, and set up base layout components.",
    "section": "Frontend",
    "priority": "high",
    "estimatedHours": 4,
    "dependencies": [],
    "order": 1
  }}
]

Generate realistic, detailed tasks covering:
- Project setup and configuration
- Frontend development (UI components, pages, routing)
- Backend development (API endpoints, business logic)
- Database implementation (schema, queries, migrations)
- Design work (UI/UX, branding, assets)
- Testing (unit tests, integration tests, E2E)
- DevOps (deployment, CI/CD, monitoring)
- Documentation (code docs, user guides)

Return the JSON array now:
"""


def build_suggestions_prompt(service_type: Optional[str], current_description: Optional[str] = None) -> str:
    service = service_type or "web development"
    reference = f"\nCurrent draft for reference: {current_description}\n" if current_description else ""

    return f"""
Generate 3 example project descriptions that help a client articulate WHY they want to build a "{service}".

Each description should be written from the client's perspective, explaining their intention and goals:
- Start with their motivation/problem (e.g., "I need to...", "I want to...", "My business needs...")
- Explain the specific goal or outcome they're trying to achieve
- Be 30-80 words (concise but clear about intentions)
- Sound natural and genuine (how a real client would describe their needs)
- Focus on Filipino business context when relevant
{reference}
**IMPORTANT: Return ONLY a JSON array of 3 intention-focused descriptions, no markdown formatting.**

Example format:
["Description 1...", "Description 2...", "Description 3..."]

Return the JSON array:
"""


def build_enhance_prompt(service_type: Optional[str], current_description: str) -> str:
    service = service_type or "web development"

    return f"""Enhance this client's project description for a "{service}" service. Keep their intention and goals clear:

"{current_description}"

Improve it by:
- Keeping their motivation and "why" at the forefront (their problem/need)
- Making their goals and desired outcomes clearer
- Adding specific details about what they want to achieve
- Keeping it natural and genuine (first-person perspective: "I need...", "I want...")
- Staying concise (30-80 words)
- Maintaining Filipino business context if present

Return ONLY the enhanced intention-focused description as plain text, no quotes, no markdown:"""
