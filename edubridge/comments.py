"""Comment thread under a single post."""

from edubridge.api import BackendError
from edubridge.interfaces import IBackendClient
from edubridge.logging import logger
from edubridge.models import AuthUser, Comment, Profile
from edubridge.toasts import Toaster
from edubridge.types import CommentInsert

COMMENT_SELECT = "*, profiles(*)"


class CommentSection:
    """Comments of one post, plus add/edit/delete by their authors.

    Args:
        client: Backend client
        toaster: Where outcome messages go
        post_id: Post the comments belong to
        comments: Comments already embedded in the fetched post
        user: Signed-in user
        profile: Profile of the signed-in user
    """

    def __init__(
        self,
        client: IBackendClient,
        toaster: Toaster,
        post_id: str,
        comments: list[Comment] | None = None,
        user: AuthUser | None = None,
        profile: Profile | None = None,
    ) -> None:
        self.client = client
        self.toaster = toaster
        self.post_id = post_id
        self.comments = list(comments or [])
        self.user = user
        self.profile = profile
        self.new_comment = ""
        self.editing_comment: Comment | None = None
        self.edited_content = ""

    def can_modify(self, comment: Comment) -> bool:
        return self.user is not None and comment.user_id == self.user.id

    async def add_comment(self) -> Comment | None:
        content = self.new_comment.strip()
        if self.user is None or self.profile is None or not content:
            return None

        payload: CommentInsert = {
            "post_id": self.post_id,
            "user_id": self.user.id,
            "content": content,
        }
        try:
            row = await self.client.insert(
                "comments", dict(payload), returning=COMMENT_SELECT, single=True
            )
        except BackendError as exc:
            logger.error(f"Comment insert failed on post {self.post_id}: {exc.message}")
            self.toaster.error("Failed to add comment.")
            return None

        comment = Comment.model_validate(row)
        self.comments.append(comment)
        self.new_comment = ""
        self.toaster.success("Comment added!")
        return comment

    def start_edit(self, comment: Comment) -> None:
        self.editing_comment = comment
        self.edited_content = comment.content

    def cancel_edit(self) -> None:
        self.editing_comment = None
        self.edited_content = ""

    async def update_comment(self) -> Comment | None:
        if self.editing_comment is None or self.user is None:
            return None
        if not self.edited_content.strip():
            return None

        try:
            row = await self.client.update(
                "comments",
                {"content": self.edited_content},
                {"id": self.editing_comment.id, "user_id": self.user.id},
                returning=COMMENT_SELECT,
                single=True,
            )
        except BackendError as exc:
            logger.error(f"Comment update failed: {exc.message}")
            self.toaster.error("Failed to update comment.")
            return None

        updated = Comment.model_validate(row)
        self.comments = [updated if c.id == updated.id else c for c in self.comments]
        self.cancel_edit()
        self.toaster.success("Comment updated!")
        return updated

    async def delete_comment(self, comment_id: str) -> bool:
        if self.user is None:
            return False
        try:
            await self.client.delete("comments", {"id": comment_id, "user_id": self.user.id})
        except BackendError as exc:
            logger.error(f"Comment delete failed: {exc.message}")
            self.toaster.error("Failed to delete comment.")
            return False

        self.comments = [c for c in self.comments if c.id != comment_id]
        self.toaster.success("Comment deleted.")
        return True


__all__ = ["COMMENT_SELECT", "CommentSection"]
