"""Text formatting for MCP tool results."""


def format_project(proj: dict) -> str:
    """Format a project for display."""
    counts = proj.get("counts") or {}
    counts_info = ""
    if counts:
        counts_info = (f"\nDocuments: {counts.get('documents', 0)}, "
                       f"Features: {counts.get('features', 0)}, "
                       f"Sprints: {counts.get('sprints', 0)}")

    return f"""**{proj['name']}**
ID: {proj['id']}{counts_info}
Created: {proj['createdAt']}
Updated: {proj['updatedAt']}"""


def format_document(doc: dict, include_content: bool = False) -> str:
    """Format a document for display (content only when asked for)."""
    slug_info = f" ({doc['slug']})" if doc.get("slug") else ""
    text = f"""**{doc['title']}**{slug_info}
ID: {doc['id']}
Project: {doc['projectId']}
Kind: {doc['kind']}
Updated: {doc['updatedAt']}"""
    if include_content:
        text += f"\n\n{doc['content']}"
    return text


def format_feature(feat: dict) -> str:
    """Format a feature for display."""
    return f"""**{feat['featureId']}**: {feat['title']}
ID: {feat['id']}
Project: {feat['projectId']}
Status: {feat['status']}
Version: {feat['version']}
Area: {feat['area']}"""


def format_sprint_item(item: dict) -> str:
    mark = "x" if item.get("checked") else " "
    return f"- [{mark}] {item['text']} (ID: {item['id']})"


def format_sprint(sprint: dict) -> str:
    """Format a sprint for display with its checklist, or its item counts in list rows."""
    dates = ""
    if sprint.get("startDate") or sprint.get("endDate"):
        dates = f"\nDates: {sprint.get('startDate') or '?'} → {sprint.get('endDate') or '?'}"

    text = f"""**{sprint['code']}**: {sprint['name']}
ID: {sprint['id']}
Project: {sprint['projectId']}
Status: {sprint['status']}{dates}"""

    if "items" in sprint:
        items = sprint["items"]
        done = sum(1 for item in items if item.get("checked"))
        text += f"\nItems: {done}/{len(items)} completed"
        if items:
            text += "\n" + "\n".join(format_sprint_item(item) for item in items)
    elif "itemCount" in sprint:
        text += f"\nItems: {sprint.get('completedItemCount', 0)}/{sprint['itemCount']} completed"
    return text


def format_list_summary(noun: str, result: dict, shown: int) -> str:
    total = result.get("total", shown)
    offset = result.get("offset", 0)
    if shown == 0:
        return f"Found {total} {noun}"
    return f"Found {total} {noun} (showing {offset + 1}-{offset + shown})"
