"""``tag-combined`` with fixed-shape start items.

Variables and bindings travel in their own follow-up items, each directly
after the start item of the node they belong to:

  VARIABLES  length = variable count, payload = name indices
  BINDINGS   length = token count, payload = binding entries (no count)
"""

from __future__ import annotations

from enum import IntEnum
from typing import ClassVar

from scopemap.bindings import read_bindings, write_bindings
from scopemap.codecs.base import read_sized_item
from scopemap.codecs.combined import TagCombinedBuilder, TagCombinedCodec, TagCombinedReader
from scopemap.codecs.fields import read_variables, write_variables
from scopemap.codecs.reader import ListLayout
from scopemap.errors import MalformedItemError
from scopemap.types import GeneratedRange, OriginalScope
from scopemap.vlq import TokenIterator, VlqList


class FollowUpTag(IntEnum):
    VARIABLES = 3
    BINDINGS = 4


class TagVariablesBuilder(TagCombinedBuilder):
    def inline_variables(self, payload: VlqList, scope: OriginalScope) -> None:
        pass

    def inline_bindings(self, payload: VlqList, range_: GeneratedRange) -> None:
        pass

    def emit_variables(self, scope: OriginalScope) -> None:
        if not scope.variables:
            return
        payload = self._codec.new_tokens()
        write_variables(payload, scope.variables, self._names, with_count=False)
        self.emit(FollowUpTag.VARIABLES, payload)

    def emit_bindings(self, range_: GeneratedRange) -> None:
        if not range_.values:
            return
        payload = self._codec.new_tokens()
        write_bindings(payload, range_, self._names, with_count=False)
        self.emit(FollowUpTag.BINDINGS, payload)


class TagVariablesReader(TagCombinedReader):
    list_layout = ListLayout.SEPARATE

    def read_item(self, iterator: TokenIterator, tag: int) -> None:
        owner = self.just_opened
        if tag == FollowUpTag.VARIABLES:
            self.just_opened = None
            if owner is None or not owner.is_original:
                raise MalformedItemError("VARIABLES item must directly follow an ORIGINAL item")
            count = iterator.next_unsigned()
            scope = owner.node
            scope.variables = read_sized_item(iterator, count, lambda item: read_variables(item, self.names, count))
        elif tag == FollowUpTag.BINDINGS:
            self.just_opened = None
            if owner is None or owner.is_original:
                raise MalformedItemError("BINDINGS item must directly follow a GENERATED item")
            length = iterator.next_unsigned()
            start = owner.node.start
            bindings = read_sized_item(
                iterator,
                length,
                lambda item: read_bindings(item, start, until=lambda: not item.has_more()),
            )
            self.ranges.attach_bindings(bindings)
        else:
            super().read_item(iterator, tag)


class TagVariablesCodec(TagCombinedCodec):
    name = "tag-variables"
    description = "tag-combined with variables and bindings split into VARIABLES/BINDINGS follow-up items"

    builder_class: ClassVar[type[TagCombinedBuilder]] = TagVariablesBuilder
    reader_class: ClassVar[type[TagCombinedReader]] = TagVariablesReader
