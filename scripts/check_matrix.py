from okrflow.database import SessionLocal
from okrflow.services.approver_resolver import ApproverResolver


def _cell(cell):
    if cell is None:
        return "-"
    if cell["error"]:
        return f"!! {cell['error']}"
    marker = " *" if cell["is_primary"] else ""
    return f"{cell['name']}{marker}"


def check_matrix():
    db = SessionLocal()
    try:
        matrix = ApproverResolver(db).approval_matrix()
        if not matrix:
            print(" (No departments found)")
        for entry in matrix:
            responsible = entry["team_responsible"]
            flag = " (tie)" if responsible.is_error else ""
            print(f"\n{entry['department']} - responsible: {', '.join(responsible.names) or '-'}{flag}")
            for row in entry["roles"]:
                print(
                    f"  - {row['role_label']}: L1 {_cell(row['l1'])} | L2 {_cell(row['l2'])} | "
                    f"L3 {_cell(row['l3'])} | CC {', '.join(row['cc_names']) or '-'}"
                )
    finally:
        db.close()


if __name__ == "__main__":
    check_matrix()
