# SPDX-License-Identifier: AGPL-3.0-or-later
"""Change ledger aligning the two snapshots species by species."""
from dataclasses import dataclass

import pandas as pd

LEDGER_COLUMNS = ["community", "species", "from_cover", "to_cover", "change"]


@dataclass(frozen=True)
class ChangeRecord:
    community_id: int
    species_id: int
    from_cover: float
    to_cover: float

    @property
    def change(self):
        return self.to_cover - self.from_cover


def build_ledger(time1, time2):
    """One record per community and species present at either time.

    A species absent from both snapshots of a community carries no
    information and gets no record, rather than a zero change.
    """
    records = []
    for cid in sorted(set(time1) | set(time2)):
        before = {occ.species_id: occ.cover for occ in time1.get(cid, ())}
        after = {occ.species_id: occ.cover for occ in time2.get(cid, ())}
        for sid in sorted(set(before) | set(after)):
            records.append(
                ChangeRecord(
                    community_id=cid,
                    species_id=sid,
                    from_cover=before.get(sid, 0.0),
                    to_cover=after.get(sid, 0.0),
                )
            )
    return records


def ledger_frame(records):
    return pd.DataFrame(
        [
            (rec.community_id, rec.species_id, rec.from_cover, rec.to_cover, rec.change)
            for rec in records
        ],
        columns=LEDGER_COLUMNS,
    )


def species_summary(records, species_ids, n_communities):
    """Per-species counts of increasing/decreasing/unchanged/undefined records.

    ``undefined`` counts the communities where the species is absent at both
    times. ``mean_change`` is NaN for a species with no defined record.
    """
    frame = ledger_frame(records)
    grouped = frame.groupby("species")["change"]
    summary = pd.DataFrame(
        {
            "increasing": grouped.apply(lambda c: int((c > 0).sum())),
            "decreasing": grouped.apply(lambda c: int((c < 0).sum())),
            "unchanged": grouped.apply(lambda c: int((c == 0).sum())),
            "defined": grouped.size(),
            "mean_change": grouped.mean(),
        }
    )
    summary = summary.reindex(pd.Index(sorted(species_ids), name="species"))
    for column in ("increasing", "decreasing", "unchanged", "defined"):
        summary[column] = summary[column].fillna(0).astype(int)
    summary["undefined"] = n_communities - summary["defined"]
    return summary[["increasing", "decreasing", "unchanged", "undefined", "mean_change"]]
